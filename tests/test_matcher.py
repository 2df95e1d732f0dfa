import pytest

from speech_assessment.scoring.matcher import analyze_interim, match_interim
from speech_assessment.scoring.normalizer import normalize


def _statuses(feedback):
	return [(f.position, f.status, f.word, f.suggestion) for f in feedback]


def test_homophone_and_sound_swap_are_partial(session):
	feedback = analyze_interim(session, "I like too eat lice")
	assert _statuses(feedback) == [
		(0, "correct", "i", None),
		(1, "correct", "like", None),
		(2, "partial", "too", "to"),
		(3, "correct", "eat", None),
		(4, "partial", "lice", "rice"),
	]
	assert feedback[2].confidence == pytest.approx(0.95 * 0.8)
	assert feedback[4].confidence == pytest.approx(0.9 * 0.8)


def test_unspoken_target_words_are_missing():
	feedback = match_interim(normalize("I like rice"), "I")
	assert _statuses(feedback) == [
		(0, "correct", "i", None),
		(1, "missing", "", "like"),
		(2, "missing", "", "rice"),
	]


def test_empty_interim_reports_every_target_word_missing(session):
	feedback = analyze_interim(session, "")
	assert [f.status for f in feedback] == ["missing"] * 5
	assert [f.suggestion for f in feedback] == session.target_words
	assert [f.position for f in feedback] == [0, 1, 2, 3, 4]


def test_unmatched_word_is_extra():
	feedback = match_interim(["hello"], "hello zebra")
	assert _statuses(feedback) == [(0, "correct", "hello", None), (1, "extra", "zebra", None)]
	assert feedback[1].confidence == 0.3


def test_middling_similarity_is_incorrect():
	feedback = match_interim(["rice"], "like")
	assert _statuses(feedback) == [(0, "incorrect", "like", "rice")]
	assert feedback[0].confidence == pytest.approx(0.3)


def test_ties_keep_first_target_index():
	feedback = match_interim(["to", "two"], "too")
	assert _statuses(feedback) == [(0, "partial", "too", "to"), (1, "missing", "", "two")]


def test_spoken_entry_sorts_before_missing_at_same_position():
	feedback = match_interim(["a", "b"], "b")
	assert _statuses(feedback) == [(0, "correct", "b", None), (0, "missing", "", "a")]


def test_each_target_index_is_covered_once(session):
	feedback = analyze_interim(session, "eat rice I like")
	matched = [f.suggestion or f.word for f in feedback if f.status in ("correct", "partial", "incorrect", "missing")]
	assert sorted(matched) == sorted(session.target_words)


def test_serializes_with_camel_case_keys(session):
	payload = analyze_interim(session, "I")[0].model_dump(by_alias=True)
	assert set(payload) == {"word", "status", "confidence", "suggestion", "position"}
