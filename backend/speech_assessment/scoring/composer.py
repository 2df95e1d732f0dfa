"""
Score composition
=================

Two policies turn alignment and timing signals into scores:

- ``compose_overall_feedback`` is the quick summary shown when a live session
  ends. It weights whole-sentence similarity, speaking speed and pause
  fluency 0.5 / 0.3 / 0.2.
- ``compose_assessment`` builds the stored ``AssessmentResult``. Accuracy,
  fluency, completeness and prosody are computed independently and the overall
  score is their plain mean.

Every sub-score is clamped to [0, 100] and both policies always return at least
one feedback line and one suggestion.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .aligner import align_with_summary
from .normalizer import normalize, normalize_text
from .schemas import (
	AssessmentResult,
	OverallFeedback,
	PauseAnalysis,
	SpeedAnalysis,
	TimingStats,
	WordComparisonResult,
)
from .similarity import text_similarity

# Recognizer confidence assumed when the caller has none.
DEFAULT_CONFIDENCE = 0.8

ADVERSE_SPEED_SCORE = 70
SLOW_PAUSE_MS = 500
LONG_PAUSE_MS = 1000

NO_SPEECH_FEEDBACK = ["No speech was detected in your recording."]
NO_SPEECH_SUGGESTIONS = [
	"Check that your microphone is connected and allowed in the browser",
	"Speak clearly and at a moderate pace",
	"Try recording again",
]


def clamp_score(value: float) -> int:
	"""Round half up and clamp to the 0-100 range."""
	if value != value:  # NaN
		return 0
	return int(max(0, min(100, math.floor(value + 0.5))))


def _speed_score(speed: Optional[SpeedAnalysis]) -> int:
	if speed is not None and speed.speed_feedback in ("too_fast", "too_slow"):
		return ADVERSE_SPEED_SCORE
	return 100


def _pause_fluency_score(pauses: Optional[PauseAnalysis]) -> int:
	if pauses is None:
		return 100
	if pauses.average_pause_duration > LONG_PAUSE_MS:
		return 60
	if pauses.average_pause_duration > SLOW_PAUSE_MS:
		return 80
	return 100


def compose_overall_feedback(
	target_text: str,
	transcript: str,
	speed: Optional[SpeedAnalysis] = None,
	pauses: Optional[PauseAnalysis] = None,
) -> OverallFeedback:
	similarity = text_similarity(normalize_text(transcript), normalize_text(target_text))
	accuracy = clamp_score(similarity * 100)
	speed_score = _speed_score(speed)
	fluency_score = _pause_fluency_score(pauses)
	overall = clamp_score(similarity * 100 * 0.5 + speed_score * 0.3 + fluency_score * 0.2)

	recommendations: List[str] = []
	if accuracy < 80:
		recommendations.append("Focus on pronouncing each word clearly")
	if speed is not None and speed.speed_feedback == "too_fast":
		recommendations.append("Slow down your speech for better clarity")
	elif speed is not None and speed.speed_feedback == "too_slow":
		recommendations.append("Try to speak a bit faster for natural flow")
	if pauses is not None and pauses.average_pause_duration > LONG_PAUSE_MS:
		recommendations.append("Reduce long pauses between words")
	if not recommendations:
		recommendations.append("Excellent speaking! Keep up the great work!")

	return OverallFeedback(
		overall_score=overall,
		accuracy=accuracy,
		fluency=fluency_score,
		speed=speed_score,
		recommendations=recommendations,
	)


def empty_transcript_assessment(original_text: str, transcription: str = "") -> AssessmentResult:
	return AssessmentResult(
		transcription=transcription,
		original_text=original_text,
		overall_score=0,
		accuracy=0,
		fluency=0,
		completeness=0,
		prosody=0,
		word_assessments=[],
		feedback=list(NO_SPEECH_FEEDBACK),
		suggestions=list(NO_SPEECH_SUGGESTIONS),
	)


def _fluency(confidence: float, timing: Optional[TimingStats]) -> float:
	score = confidence * 100
	if timing is None:
		return score
	average_pause = timing.pauses.average_pause_duration
	if average_pause > LONG_PAUSE_MS:
		score -= 30
	elif average_pause > SLOW_PAUSE_MS:
		score -= 15
	return score


def _prosody(confidence: float, timing: Optional[TimingStats]) -> float:
	# rhythm and intonation are only estimated from recognizer confidence
	score = confidence * 90
	if timing is not None and timing.speed.speed_feedback in ("too_fast", "too_slow"):
		score -= 20
	return score


def build_feedback(word_assessments: Sequence[WordComparisonResult], accuracy: int, fluency: int) -> List[str]:
	feedback: List[str] = []
	if accuracy >= 90:
		feedback.append("Excellent pronunciation! Your speech is very clear and accurate.")
	elif accuracy >= 70:
		feedback.append("Good pronunciation! A few words need improvement.")
	elif accuracy >= 50:
		feedback.append("Your pronunciation needs practice. Focus on difficult words.")
	else:
		feedback.append("Keep practicing! Try speaking more slowly and clearly.")

	if fluency < 60:
		feedback.append("Try to speak more smoothly and naturally.")

	difficult = [w.original_word for w in word_assessments if w.original_word and not w.is_correct]
	if difficult:
		feedback.append(f"Focus on these words: {', '.join(difficult[:3])}")
	return feedback


def build_suggestions(word_assessments: Sequence[WordComparisonResult], language: str = "en") -> List[str]:
	suggestions: List[str] = []
	if any(w.original_word and w.similarity < 0.6 for w in word_assessments):
		suggestions.append("Practice the difficult words multiple times")
		suggestions.append("Use a dictionary to check correct pronunciation")
		suggestions.append("Listen to native speakers saying these words")
	if language == "en":
		suggestions.append("Focus on English stress patterns and intonation")
	elif language == "zh":
		suggestions.append("Pay attention to Chinese tones and pronunciation")
	elif language == "vi":
		suggestions.append("Practice Vietnamese tones and vowel sounds")
	suggestions.append("Record yourself and compare with native speakers")
	return suggestions


def compose_assessment(
	transcript: str,
	target_text: str,
	timing_stats: Optional[TimingStats] = None,
	*,
	confidence: float = DEFAULT_CONFIDENCE,
	language: str = "en",
) -> AssessmentResult:
	"""Score a final transcript against the target sentence.

	Args:
		transcript: Final recognizer transcript
		target_text: Sentence the learner was asked to say
		timing_stats: Speed and pause analysis for the session, if recorded
		confidence: Recognizer confidence in [0, 1]
		language: Language code used to pick practice suggestions

	Returns:
		AssessmentResult whose overall score is the unweighted mean of
		accuracy, fluency, completeness and prosody. An empty transcript gives
		an all-zero result with guidance instead of raising.
	"""
	target = normalize(target_text)
	spoken = normalize(transcript)
	if not spoken:
		return empty_transcript_assessment(target_text, transcript)

	confidence = max(0.0, min(confidence, 1.0))
	summary = align_with_summary(target, spoken)
	accuracy = clamp_score(summary.accuracy * 100)
	completeness = clamp_score(len(spoken) / len(target) * 100) if target else 100
	fluency = clamp_score(_fluency(confidence, timing_stats))
	prosody = clamp_score(_prosody(confidence, timing_stats))
	overall = clamp_score((accuracy + fluency + completeness + prosody) / 4)

	return AssessmentResult(
		transcription=transcript,
		original_text=target_text,
		overall_score=overall,
		accuracy=accuracy,
		fluency=fluency,
		completeness=completeness,
		prosody=prosody,
		word_assessments=summary.results,
		feedback=build_feedback(summary.results, accuracy, fluency),
		suggestions=build_suggestions(summary.results, language),
	)
