"""Word similarity scoring combining edit distance with phonetic heuristics.

Scores are floats in [0, 1]. Known homophones score 0.95, a single swapped
sound fragment (see ``SOUND_CONFUSIONS``) scores 0.9, and anything else falls
back to a normalized Levenshtein ratio with a few small boosts.
"""
from __future__ import annotations

import Levenshtein

from .tables import HOMOPHONE_GROUPS, SOUND_CONFUSIONS

EXACT_SCORE = 1.0
HOMOPHONE_SCORE = 0.95
SOUND_CONFUSION_SCORE = 0.9

SHORT_WORD_FLOOR = 0.8
FIRST_LETTER_BOOST = 0.1
ENDING_BOOST = 0.05

# Minimum length for the same-first-letter boost. Word-level comparisons use 3;
# whole-transcript comparisons in the streaming composer use 4.
WORD_FIRST_LETTER_MIN_LEN = 3
TEXT_FIRST_LETTER_MIN_LEN = 4


def are_homophones(word1: str, word2: str) -> bool:
	for group in HOMOPHONE_GROUPS:
		if word1 in group and word2 in group:
			return True
	return False


def is_sound_confusion(word1: str, word2: str) -> bool:
	"""True when swapping one confusable fragment turns one word into the other."""
	for sound1, sound2 in SOUND_CONFUSIONS:
		for src, dst in ((sound1, sound2), (sound2, sound1)):
			if src in word1 and word1.replace(src, dst, 1) == word2:
				return True
			if src in word2 and word2.replace(src, dst, 1) == word1:
				return True
	return False


def edit_similarity(word1: str, word2: str, *, first_letter_min_len: int = WORD_FIRST_LETTER_MIN_LEN) -> float:
	max_len = max(len(word1), len(word2))
	if max_len == 0:
		return 1.0
	distance = Levenshtein.distance(word1, word2)
	similarity = (max_len - distance) / max_len

	if max_len <= 3 and distance <= 1:
		similarity = max(similarity, SHORT_WORD_FLOOR)
	if word1[:1] and word1[:1] == word2[:1] and max_len >= first_letter_min_len:
		similarity = min(similarity + FIRST_LETTER_BOOST, 1.0)
	if word1[-2:] == word2[-2:] and max_len >= 4:
		similarity = min(similarity + ENDING_BOOST, 1.0)
	return max(0.0, min(similarity, 1.0))


def word_similarity(word1: str, word2: str, *, first_letter_min_len: int = WORD_FIRST_LETTER_MIN_LEN) -> float:
	"""Score two normalized tokens in [0, 1].

	Args:
		word1: First token
		word2: Second token
		first_letter_min_len: Shortest ``max(len)`` eligible for the
			same-first-letter boost

	Returns:
		1.0 for identical tokens, 0.95 for homophones, 0.9 for a single
		sound-fragment swap, otherwise the boosted edit-distance ratio.
	"""
	if word1 == word2:
		return EXACT_SCORE
	if are_homophones(word1, word2):
		return HOMOPHONE_SCORE
	if is_sound_confusion(word1, word2):
		return SOUND_CONFUSION_SCORE
	return edit_similarity(word1, word2, first_letter_min_len=first_letter_min_len)


def text_similarity(text1: str, text2: str) -> float:
	"""Whole-string similarity used by the streaming overall feedback."""
	return word_similarity(text1, text2, first_letter_min_len=TEXT_FIRST_LETTER_MIN_LEN)


def is_heuristic_match(word1: str, word2: str) -> bool:
	"""True when two different tokens are only linked through the lookup tables."""
	return word1 != word2 and (are_homophones(word1, word2) or is_sound_confusion(word1, word2))
