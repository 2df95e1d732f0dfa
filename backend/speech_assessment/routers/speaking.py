"""
Speaking Session Module
=======================

HTTP surface for live read-aloud practice. A client opens a session with the
sentence the learner should read, streams interim recognizer transcripts and
word arrivals while the learner speaks, and finishes with the final
transcript to receive a full assessment.

API Endpoints:
- POST /speaking/sessions: Open a session for a target sentence
- POST /speaking/sessions/{session_id}/interim: Word-by-word feedback on an interim transcript
- POST /speaking/sessions/{session_id}/words: Record a recognized word's timing
- GET /speaking/sessions/{session_id}/speed: Speaking rate so far
- GET /speaking/sessions/{session_id}/pauses: Pause pattern so far
- POST /speaking/sessions/{session_id}/finish: Assess the final transcript and close the session
- POST /speaking/sessions/{session_id}/reset: Restart timing, optionally with a new target sentence
- POST /speaking/compare: One-off alignment of a transcript against a sentence
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..assessment import AssessmentOutcome, assess_speech
from ..gemini_client import GeminiClient
from ..scoring.aligner import align_final
from ..scoring.composer import compose_overall_feedback
from ..scoring.matcher import analyze_interim
from ..scoring.normalizer import normalize
from ..scoring.schemas import OverallFeedback, PauseAnalysis, RealTimeFeedback, SpeedAnalysis, WordComparisonResult
from ..scoring.session import SpeechSession
from ..settings import settings
from ..scoring.timing import (
	analyze_pauses,
	analyze_speed,
	now_ms,
	record_word_span,
	record_word_timing,
	start_timing,
	timing_stats,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/speaking", tags=["speaking"])

# ============================================================================
# SESSION STORAGE
# ============================================================================

# In-process session storage; sessions live until finished or idle past SESSION_MAX_AGE_SECONDS
_sessions: Dict[str, SpeechSession] = {}


def _purge_stale_sessions() -> None:
	cutoff = time.time() - settings.session_max_age_seconds
	stale = [sid for sid, s in _sessions.items() if s.last_active < cutoff]
	for sid in stale:
		del _sessions[sid]
	if stale:
		logger.info("Dropped %d idle speaking sessions", len(stale))


def _get_session(session_id: str) -> SpeechSession:
	_purge_stale_sessions()
	session = _sessions.get(session_id)
	if session is None:
		raise HTTPException(status_code=404, detail="Session not found")
	session.touch()
	return session


def get_provider_client() -> Optional[GeminiClient]:
	"""Provider client for the assessment chain; None lets the chain build one from settings."""
	return None


# ============================================================================
# DATA MODELS
# ============================================================================

class StartSessionRequest(BaseModel):
	target_text: str = Field(min_length=1)


class StartSessionResponse(BaseModel):
	session_id: str
	target_text: str
	target_words: List[str]


class ResetRequest(BaseModel):
	# Keeps the current sentence when omitted
	target_text: Optional[str] = None


class InterimRequest(BaseModel):
	transcript: str


class WordTimingRequest(BaseModel):
	word: str = Field(min_length=1)
	# Milliseconds; arrival time when end_time is omitted, otherwise the word start
	timestamp: Optional[float] = None
	end_time: Optional[float] = None


class WordTimingResponse(BaseModel):
	session_id: str
	recorded_words: int


class FinishRequest(BaseModel):
	transcript: str
	use_ai: bool = True
	language: Optional[str] = None
	confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class FinishResponse(BaseModel):
	session_id: str
	assessment: AssessmentOutcome
	overall: OverallFeedback
	speed: SpeedAnalysis
	pauses: PauseAnalysis


class CompareRequest(BaseModel):
	target_text: str
	transcript: str


# ============================================================================
# API ENDPOINTS
# ============================================================================

@router.post("/sessions", response_model=StartSessionResponse)
def start_session(req: StartSessionRequest) -> StartSessionResponse:
	"""Open a practice session for a target sentence.

	Args:
		req: Request containing the sentence the learner will read

	Returns:
		StartSessionResponse with the session id and normalized target words

	Raises:
		HTTPException: 400 if the sentence has no words after normalization
	"""
	_purge_stale_sessions()
	session = SpeechSession(req.target_text)
	if not session.target_words:
		raise HTTPException(status_code=400, detail="Target text contains no words")
	start_timing(session)
	_sessions[session.session_id] = session
	logger.info("Opened speaking session %s (%d target words)", session.session_id, len(session.target_words))
	return StartSessionResponse(
		session_id=session.session_id,
		target_text=session.target_text,
		target_words=session.target_words,
	)


@router.post("/sessions/{session_id}/interim", response_model=List[RealTimeFeedback])
def interim_feedback(session_id: str, req: InterimRequest) -> List[RealTimeFeedback]:
	"""Word-by-word status for the transcript heard so far.

	Every target word appears exactly once in the response, either matched or
	as ``missing``; spoken words that match nothing come back as ``extra``.
	"""
	session = _get_session(session_id)
	return analyze_interim(session, req.transcript)


@router.post("/sessions/{session_id}/words", response_model=WordTimingResponse)
def record_word(session_id: str, req: WordTimingRequest) -> WordTimingResponse:
	"""Record when a recognized word arrived.

	Args:
		session_id: Session to record into
		req: Word with an arrival timestamp, or a start/end span from recognizer offsets

	Returns:
		WordTimingResponse with the number of timed words so far

	Raises:
		HTTPException: 404 for an unknown session, 400 if the span ends before it starts
	"""
	session = _get_session(session_id)
	timestamp = now_ms() if req.timestamp is None else req.timestamp
	if req.end_time is None:
		record_word_timing(session, req.word, timestamp)
	else:
		try:
			record_word_span(session, req.word, timestamp, req.end_time)
		except ValueError as err:
			raise HTTPException(status_code=400, detail=str(err))
	return WordTimingResponse(session_id=session_id, recorded_words=len(session.timings))


@router.get("/sessions/{session_id}/speed", response_model=SpeedAnalysis)
def session_speed(session_id: str) -> SpeedAnalysis:
	return analyze_speed(_get_session(session_id))


@router.get("/sessions/{session_id}/pauses", response_model=PauseAnalysis)
def session_pauses(session_id: str) -> PauseAnalysis:
	return analyze_pauses(_get_session(session_id))


@router.post("/sessions/{session_id}/finish", response_model=FinishResponse)
async def finish_session(
	session_id: str,
	req: FinishRequest,
	client: Optional[GeminiClient] = Depends(get_provider_client),
) -> FinishResponse:
	"""Assess the final transcript and close the session.

	Runs the assessment chain (AI provider, then local scoring, then bounded
	placeholder scores) and the quick weighted summary used by the live view.
	The session is removed once the response is built.

	Args:
		session_id: Session to finish
		req: Final transcript and assessment options
		client: Provider client injected for the AI tier

	Returns:
		FinishResponse with the assessment outcome, weighted summary and timing analysis

	Raises:
		HTTPException: 404 for an unknown session, 400 if it has no target sentence
	"""
	session = _get_session(session_id)
	if not session.target_words:
		raise HTTPException(status_code=400, detail="Session has no target sentence")
	stats = timing_stats(session)
	outcome = await assess_speech(
		session.target_text,
		req.transcript,
		language=req.language,
		timing_stats=stats,
		confidence=req.confidence,
		use_ai=req.use_ai,
		client=client,
	)
	overall = compose_overall_feedback(session.target_text, outcome.result.transcription, stats.speed, stats.pauses)
	_sessions.pop(session_id, None)
	logger.info("Finished speaking session %s via %s (overall %d)", session_id, outcome.method, outcome.result.overall_score)
	return FinishResponse(
		session_id=session_id,
		assessment=outcome,
		overall=overall,
		speed=stats.speed,
		pauses=stats.pauses,
	)


@router.post("/sessions/{session_id}/reset", response_model=StartSessionResponse)
def reset_session(session_id: str, req: Optional[ResetRequest] = None) -> StartSessionResponse:
	"""Start the recording over, keeping the session id.

	The timing log is cleared and timing restarts now. The target sentence is
	kept unless the request supplies a new one.

	Args:
		session_id: Session to reset
		req: Optional new target sentence

	Returns:
		StartSessionResponse with the sentence the session now targets

	Raises:
		HTTPException: 404 for an unknown session, 400 if the new sentence has no words
	"""
	session = _get_session(session_id)
	target_text = session.target_text
	if req is not None and req.target_text is not None:
		if not normalize(req.target_text):
			raise HTTPException(status_code=400, detail="Target text contains no words")
		target_text = req.target_text
	session.reset()
	session.set_target_text(target_text)
	start_timing(session)
	return StartSessionResponse(
		session_id=session.session_id,
		target_text=session.target_text,
		target_words=session.target_words,
	)


@router.post("/compare", response_model=List[WordComparisonResult])
def compare(req: CompareRequest) -> List[WordComparisonResult]:
	"""Align a transcript against a sentence without opening a session."""
	return align_final(normalize(req.target_text), normalize(req.transcript))
