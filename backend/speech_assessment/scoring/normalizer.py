"""Text normalization into comparable word tokens."""
from __future__ import annotations

import re
from typing import List

from .tables import APOSTROPHE_ONLY_CONTRACTIONS, CONTRACTIONS

_CURLY_APOSTROPHES = re.compile(r"[‘’ʼ`]")
_NON_WORD = re.compile(r"[^\w\s]|_")
_APOSTROPHE_ONLY = re.compile(
	r"\b(" + "|".join(re.escape(k) for k in APOSTROPHE_ONLY_CONTRACTIONS) + r")\b"
)


def normalize(text: str) -> List[str]:
	"""Turn raw text into a list of lowercase tokens.

	Punctuation and symbols are dropped and contractions are expanded, so
	"Don't!" and "dont" both become ``["do", "not"]``. Empty or whitespace-only
	input gives an empty list. Applying it to its own joined output is a no-op.
	"""
	if not text or not text.strip():
		return []
	lowered = _CURLY_APOSTROPHES.sub("'", text.lower())
	lowered = _APOSTROPHE_ONLY.sub(lambda m: APOSTROPHE_ONLY_CONTRACTIONS[m.group(1)], lowered)
	stripped = _NON_WORD.sub("", lowered)
	tokens: List[str] = []
	for raw in stripped.split():
		expansion = CONTRACTIONS.get(raw)
		if expansion:
			tokens.extend(expansion.split())
		else:
			tokens.append(raw)
	return tokens


def normalize_text(text: str) -> str:
	return " ".join(normalize(text))
