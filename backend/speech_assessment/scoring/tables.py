"""Read-only lookup tables shared by every assessment session."""
from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple

# Contractions are keyed by their de-apostrophized spelling; the normalizer
# strips apostrophes before lookup so "don't" and "dont" land on the same key.
CONTRACTIONS: Mapping[str, str] = MappingProxyType({
	"wont": "will not",
	"cant": "cannot",
	"dont": "do not",
	"doesnt": "does not",
	"didnt": "did not",
	"youre": "you are",
	"theyre": "they are",
	"im": "i am",
	"hes": "he is",
	"shes": "she is",
	"its": "it is",
	"thats": "that is",
	"isnt": "is not",
	"arent": "are not",
	"wasnt": "was not",
	"werent": "were not",
	"havent": "have not",
	"hasnt": "has not",
	"hadnt": "had not",
	"wouldnt": "would not",
	"couldnt": "could not",
	"shouldnt": "should not",
})

# "we're" is expanded only in its apostrophized form; the bare spelling is the
# past tense of "be".
APOSTROPHE_ONLY_CONTRACTIONS: Mapping[str, str] = MappingProxyType({
	"we're": "we are",
})

# Groups of words that sound alike. Any two members of a group are homophones.
HOMOPHONE_GROUPS: Tuple[FrozenSet[str], ...] = (
	frozenset({"to", "too", "two"}),
	frozenset({"there", "their", "theyre"}),
	frozenset({"your", "youre"}),
	frozenset({"than", "then"}),
	frozenset({"accept", "except"}),
	frozenset({"affect", "effect"}),
	frozenset({"brake", "break"}),
	frozenset({"buy", "by", "bye"}),
	frozenset({"hear", "here"}),
	frozenset({"hour", "our"}),
	frozenset({"know", "no", "now"}),
	frozenset({"one", "won"}),
	frozenset({"right", "write", "rite"}),
	frozenset({"sea", "see"}),
	frozenset({"week", "weak"}),
	frozenset({"wood", "would"}),
	frozenset({"where", "were", "wear"}),
	# recognizer mishearings of accented speech
	frozenset({"think", "fink", "sink"}),
	frozenset({"the", "ve", "de"}),
	frozenset({"water", "vater", "vatter"}),
	frozenset({"what", "vat", "wat"}),
	frozenset({"very", "wery", "vely"}),
	frozenset({"with", "wif", "vith"}),
)

# Sound fragments that learners and recognizers commonly swap.
SOUND_CONFUSIONS: Tuple[Tuple[str, str], ...] = (
	("th", "f"),
	("th", "v"),
	("w", "v"),
	("r", "l"),
	("b", "p"),
	("d", "t"),
	("g", "k"),
	("z", "s"),
	("j", "y"),
	("ch", "sh"),
	("s", "sh"),
	("n", "m"),
)
