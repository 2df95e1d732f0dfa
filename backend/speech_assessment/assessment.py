"""
Speech Assessment Chain
=======================

Produces the final ``AssessmentResult`` for a submission. The AI provider is
tried first and the deterministic scorer in ``scoring`` backs it up:

1. Gemini (primary model)
2. OpenRouter (secondary model), reached from the client when Gemini fails
   or returns something unusable
3. Local alignment scoring (``compose_assessment``)
4. Placeholder scores within fixed bounds
5. A zero-score result explaining that nothing could be assessed

An AI result is only kept outright when its overall score reaches
``AI_ACCEPTANCE_THRESHOLD``; below that it competes with the local result and
the higher overall score wins. Provider failures never reach the caller.
"""

from __future__ import annotations

import json
import logging
import random
import re
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel

from .gemini_client import AssessmentProviderError, GeminiClient
from .scoring.composer import clamp_score, compose_assessment, empty_transcript_assessment
from .scoring.normalizer import normalize, normalize_text
from .scoring.schemas import AssessmentResult, TimingStats, WordComparisonResult
from .settings import settings

logger = logging.getLogger(__name__)

AssessmentMethod = Literal["ai", "local", "placeholder", "none"]

LANGUAGE_NAMES: Dict[str, str] = {"en": "English", "zh": "Chinese", "vi": "Vietnamese"}

SYSTEM_PROMPT = "You are an expert pronunciation assessor. Always respond with valid JSON only."

# Keys accepted for each score in a provider payload
_SCORE_KEYS: Dict[str, tuple] = {
	"accuracy": ("accuracy", "accuracyScore"),
	"fluency": ("fluency", "fluencyScore"),
	"completeness": ("completeness", "completenessScore"),
	"prosody": ("prosody", "prosodyScore"),
	"overall_score": ("overallScore", "overall_score"),
}


class AssessmentOutcome(BaseModel):
	result: AssessmentResult
	method: AssessmentMethod
	model: Optional[str] = None


# ============================================================================
# TRANSCRIPT AND PAYLOAD HELPERS
# ============================================================================

def dedupe_transcript(text: str, reference: str = "") -> str:
	"""Collapse repeated 1–3 word phrases and extra whitespace in transcript.

	Recognizers often repeat phrases where interim and final results overlap.
	A repetition that the reference sentence itself contains ("she had had
	enough") is left alone.

	Args:
		text: Raw transcript text that may contain repeated phrases
		reference: Sentence the learner was asked to read

	Returns:
		Cleaned transcript with duplicates removed and normalized whitespace
	"""
	s = re.sub(r"\s+", " ", text or "").strip()
	if not s:
		return s
	ref = f" {normalize_text(reference)} "

	def collapse(match: re.Match) -> str:
		if f" {normalize_text(match.group(0))} " in ref:
			return match.group(0)
		return match.group(1)

	patterns = [
		r"\b(\w+\s+\w+\s+\w+)(?:\s+\1\b)+",
		r"\b(\w+\s+\w+)(?:\s+\1\b)+",
		r"\b(\w+)(?:\s+\1\b)+",
	]
	for pat in patterns:
		s = re.sub(pat, collapse, s, flags=re.IGNORECASE)
	return re.sub(r"\s+", " ", s).strip()


def _balanced_object_end(text: str, start: int) -> int:
	"""Index just past the ``}`` closing the object opened at ``start``, or -1."""
	depth = 0
	in_string = False
	escaped = False
	for idx in range(start, len(text)):
		ch = text[idx]
		if in_string:
			if escaped:
				escaped = False
			elif ch == "\\":
				escaped = True
			elif ch == '"':
				in_string = False
		elif ch == '"':
			in_string = True
		elif ch == "{":
			depth += 1
		elif ch == "}":
			depth -= 1
			if depth == 0:
				return idx + 1
	return -1


def extract_json_block(text: str) -> Dict[str, Any]:
	"""Extract a JSON object from LLM response text.

	Tries the whole text first, then each balanced ``{...}`` substring in order
	(so markdown fences and chatter around the object are ignored).

	Raises:
		ValueError: If no JSON object can be extracted from the text
	"""
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			return data
	except (TypeError, ValueError):
		pass
	text = text or ""
	start = text.find("{")
	while start != -1:
		end = _balanced_object_end(text, start)
		if end == -1:
			break
		try:
			data = json.loads(text[start:end])
			if isinstance(data, dict):
				return data
		except ValueError:
			pass
		start = text.find("{", start + 1)
	raise ValueError("Failed to parse JSON from model output")


def _safe_float(value: Any) -> Optional[float]:
	try:
		if value is None or isinstance(value, bool):
			return None
		return float(value)
	except (TypeError, ValueError):
		return None


def _string_list(value: Any) -> List[str]:
	if isinstance(value, str):
		return [value.strip()] if value.strip() else []
	if isinstance(value, list):
		return [str(v).strip() for v in value if str(v).strip()]
	return []


def _word_assessments(data: Dict[str, Any]) -> List[WordComparisonResult]:
	items = data.get("wordAssessments") or data.get("words") or []
	results: List[WordComparisonResult] = []
	if not isinstance(items, list):
		return results
	for item in items:
		if not isinstance(item, dict):
			continue
		word = str(item.get("word", "")).strip()
		if not word:
			continue
		score = _safe_float(item.get("accuracy", item.get("accuracyScore")))
		similarity = max(0.0, min((score or 0.0) / 100, 1.0))
		error_type = str(item.get("errorType") or "None")
		if error_type == "Omission":
			results.append(WordComparisonResult(word="___", original_word=word, is_correct=False, similarity=0.0))
		elif error_type == "Insertion":
			results.append(WordComparisonResult(word=word, original_word="", is_correct=False, similarity=0.0))
		else:
			results.append(WordComparisonResult(
				word=word,
				original_word=word,
				is_correct=similarity > 0.7 and error_type == "None",
				similarity=similarity,
			))
	return results


def parse_provider_payload(data: Dict[str, Any], original_text: str, transcript: str) -> AssessmentResult:
	"""Convert a provider JSON payload into an ``AssessmentResult``.

	Raises:
		ValueError: If a sub-score is missing or not numeric
	"""
	scores: Dict[str, Optional[float]] = {}
	for name, keys in _SCORE_KEYS.items():
		scores[name] = next((v for v in (_safe_float(data.get(k)) for k in keys) if v is not None), None)
	missing = [name for name in ("accuracy", "fluency", "completeness", "prosody") if scores[name] is None]
	if missing:
		raise ValueError(f"Provider payload missing scores: {', '.join(missing)}")
	clamped = {name: clamp_score(value) for name, value in scores.items() if value is not None}
	if "overall_score" not in clamped:
		clamped["overall_score"] = clamp_score(
			(clamped["accuracy"] + clamped["fluency"] + clamped["completeness"] + clamped["prosody"]) / 4
		)

	feedback = _string_list(data.get("feedback")) or ["Assessment completed."]
	suggestions = _string_list(data.get("suggestions")) or ["Keep practicing by reading aloud every day"]
	return AssessmentResult(
		transcription=transcript,
		original_text=original_text,
		overall_score=clamped["overall_score"],
		accuracy=clamped["accuracy"],
		fluency=clamped["fluency"],
		completeness=clamped["completeness"],
		prosody=clamped["prosody"],
		word_assessments=_word_assessments(data),
		feedback=feedback,
		suggestions=suggestions,
	)


def build_assessment_prompt(original_text: str, language: str, transcript: str) -> str:
	language_name = LANGUAGE_NAMES.get(language, "English")
	return f"""
You are an expert language pronunciation assessor for {language_name} learners.

Reference text (what the learner was asked to read):
"{original_text}"

Learner's transcribed speech:
"{transcript}"

Assess accuracy (0-100), fluency (0-100), completeness (0-100, share of the reference that was spoken),
prosody (0-100, rhythm, stress and intonation) and an overall score (0-100).
For every reference word give an accuracy (0-100) and an errorType of "None", "Mispronunciation", "Omission" or "Insertion".

Return STRICT JSON only, no markdown, following exactly this schema:
{{
  "overallScore": number,
  "accuracy": number,
  "fluency": number,
  "completeness": number,
  "prosody": number,
  "wordAssessments": [{{"word": string, "accuracy": number, "errorType": string}}],
  "feedback": [string],
  "suggestions": [string]
}}
""".strip()


# ============================================================================
# LAST-RESORT RESULTS
# ============================================================================

def placeholder_assessment(original_text: str, rng: Optional[random.Random] = None, transcript: str = "") -> AssessmentResult:
	"""Bounded stand-in scores used when neither AI nor local scoring worked."""
	rng = rng or random.Random()
	words = normalize(original_text)
	return AssessmentResult(
		transcription=transcript,
		original_text=original_text,
		overall_score=75,
		accuracy=80,
		fluency=70,
		completeness=90,
		prosody=75,
		word_assessments=[
			WordComparisonResult(word=w, original_word=w, is_correct=True, similarity=round(rng.uniform(0.75, 0.95), 2))
			for w in words
		],
		feedback=["Assessment completed! Keep practicing to improve your pronunciation."],
		suggestions=[
			"Read aloud daily to improve fluency",
			"Listen to native speakers",
			"Practice difficult words repeatedly",
		],
	)


def failed_assessment(original_text: str, transcript: str = "") -> AssessmentResult:
	return AssessmentResult(
		transcription=transcript,
		original_text=original_text,
		overall_score=0,
		accuracy=0,
		fluency=0,
		completeness=0,
		prosody=0,
		word_assessments=[],
		feedback=["Could not process your recording. Please try again."],
		suggestions=[
			"Ensure your microphone is working properly",
			"Speak clearly and at a moderate pace",
			"Check your internet connection",
		],
	)


# ============================================================================
# CHAIN
# ============================================================================

async def _assess_with_ai(
	original_text: str,
	transcript: str,
	language: str,
	client: Optional[GeminiClient],
) -> Tuple[Optional[AssessmentResult], Optional[str]]:
	owns_client = client is None
	try:
		if client is None:
			client = GeminiClient()
	except AssessmentProviderError as err:
		logger.info("AI assessment skipped: %s", err)
		return None, None
	try:
		result = await client.generate(
			build_assessment_prompt(original_text, language, transcript),
			system=SYSTEM_PROMPT,
			parse=lambda raw: parse_provider_payload(extract_json_block(raw), original_text, transcript),
		)
		return result, client.last_model
	except AssessmentProviderError as err:
		logger.warning("AI assessment failed: %s", err)
		return None, None
	finally:
		if owns_client:
			await client.aclose()


def _assess_locally(
	original_text: str,
	transcript: str,
	timing_stats: Optional[TimingStats],
	confidence: float,
	language: str,
) -> Optional[AssessmentResult]:
	try:
		return compose_assessment(transcript, original_text, timing_stats, confidence=confidence, language=language)
	except Exception:
		logger.exception("Local assessment failed")
		return None


async def assess_speech(
	original_text: str,
	transcript: str,
	*,
	language: Optional[str] = None,
	timing_stats: Optional[TimingStats] = None,
	confidence: float = 0.8,
	use_ai: bool = True,
	client: Optional[GeminiClient] = None,
	rng: Optional[random.Random] = None,
) -> AssessmentOutcome:
	"""Assess a final transcript against the reference text.

	Args:
		original_text: Reference sentence shown to the learner
		transcript: Final recognizer transcript
		language: Language code (defaults to ``ASSESSMENT_LANGUAGE``)
		timing_stats: Speed and pause analysis for the recording, if any
		confidence: Recognizer confidence in [0, 1] for local scoring
		use_ai: Whether to consult the AI provider at all
		client: Provider client to use; one is built from settings when omitted
		rng: Random source for placeholder scores

	Returns:
		AssessmentOutcome with the chosen result and the tier that produced it
	"""
	language = language or settings.assessment_language
	clean_transcript = dedupe_transcript(transcript, original_text)
	if not normalize(clean_transcript):
		return AssessmentOutcome(result=empty_transcript_assessment(original_text, clean_transcript), method="none")

	ai_result: Optional[AssessmentResult] = None
	if use_ai:
		ai_result, ai_model = await _assess_with_ai(original_text, clean_transcript, language, client)
		if ai_result is not None and ai_result.overall_score >= settings.ai_acceptance_threshold:
			logger.info("Using AI assessment (overall %d)", ai_result.overall_score)
			return AssessmentOutcome(result=ai_result, method="ai", model=ai_model)
		if ai_result is not None:
			logger.info("AI overall score %d below threshold; comparing with local scoring", ai_result.overall_score)

	local_result = _assess_locally(original_text, clean_transcript, timing_stats, confidence, language)
	if local_result is not None:
		if ai_result is not None and ai_result.overall_score >= local_result.overall_score:
			return AssessmentOutcome(result=ai_result, method="ai", model=ai_model)
		return AssessmentOutcome(result=local_result, method="local")

	try:
		return AssessmentOutcome(result=placeholder_assessment(original_text, rng, clean_transcript), method="placeholder")
	except Exception:
		logger.exception("Placeholder assessment failed")
		return AssessmentOutcome(result=failed_assessment(original_text, clean_transcript), method="none")
