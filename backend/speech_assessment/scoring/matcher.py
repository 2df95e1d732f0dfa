"""Greedy word matching for interim (still changing) transcripts.

Interim results are re-scored on every recognizer update, so this runs a single
best-match pass instead of the full DP alignment used for final scoring. Each
call stands alone: the caller passes the complete interim text every time.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Set

from .normalizer import normalize
from .schemas import RealTimeFeedback
from .session import SpeechSession
from .similarity import is_heuristic_match, word_similarity

CORRECT_THRESHOLD = 0.9
PARTIAL_THRESHOLD = 0.7
INCORRECT_THRESHOLD = 0.5

PARTIAL_CONFIDENCE_SCALE = 0.8
INCORRECT_CONFIDENCE_SCALE = 0.6
INCORRECT_CONFIDENCE_FLOOR = 0.2
EXTRA_CONFIDENCE = 0.3


def _classify(spoken: str, target: Optional[str], similarity: float, position: int) -> RealTimeFeedback:
	if target is not None and similarity >= CORRECT_THRESHOLD and not is_heuristic_match(spoken, target):
		return RealTimeFeedback(word=spoken, status="correct", confidence=similarity, position=position)
	if target is not None and similarity >= PARTIAL_THRESHOLD:
		return RealTimeFeedback(
			word=spoken,
			status="partial",
			confidence=similarity * PARTIAL_CONFIDENCE_SCALE,
			suggestion=target,
			position=position,
		)
	if target is not None and similarity >= INCORRECT_THRESHOLD:
		return RealTimeFeedback(
			word=spoken,
			status="incorrect",
			confidence=max(similarity * INCORRECT_CONFIDENCE_SCALE, INCORRECT_CONFIDENCE_FLOOR),
			suggestion=target,
			position=position,
		)
	return RealTimeFeedback(word=spoken, status="extra", confidence=EXTRA_CONFIDENCE, position=position)


def match_interim(target: Sequence[str], interim_text: str) -> List[RealTimeFeedback]:
	"""Classify each word of an interim transcript against the target tokens.

	Spoken words keep their spoken index as ``position``; target words never
	matched are appended as ``missing`` entries at their target index. The
	result is sorted by position (stable, so a spoken word sorts before a
	missing word at the same index).
	"""
	spoken_words = normalize(interim_text)
	consumed: Set[int] = set()
	feedback: List[RealTimeFeedback] = []
	for position, spoken in enumerate(spoken_words):
		best_index = -1
		best_similarity = 0.0
		for index, candidate in enumerate(target):
			if index in consumed:
				continue
			similarity = word_similarity(spoken, candidate)
			if similarity > best_similarity:
				best_index, best_similarity = index, similarity

		matched = target[best_index] if best_index >= 0 else None
		entry = _classify(spoken, matched, best_similarity, position)
		if entry.status != "extra":
			consumed.add(best_index)
		feedback.append(entry)

	for index, word in enumerate(target):
		if index not in consumed:
			feedback.append(RealTimeFeedback(
				word="", status="missing", confidence=0.0, suggestion=word, position=index,
			))

	return sorted(feedback, key=lambda f: f.position)


def analyze_interim(session: SpeechSession, interim_text: str) -> List[RealTimeFeedback]:
	return match_interim(session.target_words, interim_text)
