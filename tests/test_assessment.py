import asyncio
import json
import random

import httpx
import pytest

from speech_assessment import assessment
from speech_assessment.assessment import (
	assess_speech,
	build_assessment_prompt,
	dedupe_transcript,
	extract_json_block,
	failed_assessment,
	parse_provider_payload,
	placeholder_assessment,
)
from speech_assessment.gemini_client import GeminiClient
from speech_assessment.scoring.composer import compose_assessment

TARGET = "I like to eat rice"

AI_PAYLOAD = {
	"overallScore": 91,
	"accuracy": 95,
	"fluency": 88,
	"completeness": 100,
	"prosody": 80,
	"wordAssessments": [
		{"word": "I", "accuracy": 98, "errorType": "None"},
		{"word": "rice", "accuracy": 40, "errorType": "Mispronunciation"},
		{"word": "eat", "accuracy": 0, "errorType": "Omission"},
	],
	"feedback": ["Nice rhythm."],
	"suggestions": ["Work on the r sound."],
}


def _gemini_body(payload):
	text = payload if isinstance(payload, str) else json.dumps(payload)
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _openrouter_body(payload):
	return {"choices": [{"message": {"content": json.dumps(payload)}}]}


def _run(coro_factory):
	return asyncio.run(coro_factory())


# ============================================================================
# HELPERS
# ============================================================================

def test_dedupe_transcript():
	assert dedupe_transcript("I like like rice rice") == "I like rice"
	assert dedupe_transcript("the cat sat the cat sat on the mat") == "the cat sat on the mat"
	assert dedupe_transcript("  spaced \n out ") == "spaced out"
	assert dedupe_transcript("") == ""


def test_dedupe_keeps_repetitions_the_reference_contains():
	assert dedupe_transcript("She had had enough", "She had had enough.") == "She had had enough"
	assert dedupe_transcript("She had had enough enough", "She had had enough") == "She had had enough"
	assert dedupe_transcript("that that is is fine", "That that is, is fine") == "that that is is fine"


def test_extract_json_block_from_fenced_text():
	assert extract_json_block('```json\n{"a": 1}\n```') == {"a": 1}


def test_extract_json_block_ignores_braces_in_strings():
	text = 'Result: {"note": "use } carefully", "n": 2} and {"other": 3}'
	assert extract_json_block(text) == {"note": "use } carefully", "n": 2}


def test_extract_json_block_skips_invalid_candidates():
	assert extract_json_block("{not json} then {\"ok\": true}") == {"ok": True}


@pytest.mark.parametrize("text", ["no json here", "[1, 2]", "{broken", ""])
def test_extract_json_block_raises(text):
	with pytest.raises(ValueError):
		extract_json_block(text)


def test_parse_provider_payload_maps_words():
	result = parse_provider_payload(AI_PAYLOAD, TARGET, "I like to rice")
	assert result.overall_score == 91
	assert result.transcription == "I like to rice"
	words = [(w.word, w.original_word, w.is_correct) for w in result.word_assessments]
	assert words == [("I", "I", True), ("rice", "rice", False), ("___", "eat", False)]
	assert result.feedback == ["Nice rhythm."]


def test_parse_provider_payload_accepts_score_suffixes_and_clamps():
	data = {"accuracyScore": 88.6, "fluencyScore": "70", "completeness": 140, "prosody": 65}
	result = parse_provider_payload(data, TARGET, TARGET)
	assert result.accuracy == 89
	assert result.completeness == 100
	assert result.overall_score == 81
	assert result.feedback and result.suggestions


def test_parse_provider_payload_requires_scores():
	with pytest.raises(ValueError):
		parse_provider_payload({"accuracy": 90, "fluency": 80}, TARGET, TARGET)


def test_prompt_mentions_both_texts():
	prompt = build_assessment_prompt(TARGET, "vi", "I like rice")
	assert TARGET in prompt
	assert "I like rice" in prompt
	assert "Vietnamese" in prompt


def test_placeholder_assessment_is_bounded():
	result = placeholder_assessment(TARGET, random.Random(7))
	assert result.overall_score == 75
	assert len(result.word_assessments) == 5
	assert all(0.75 <= w.similarity <= 0.95 for w in result.word_assessments)


def test_failed_assessment_is_zero():
	result = failed_assessment(TARGET)
	assert result.overall_score == 0
	assert result.feedback


# ============================================================================
# CHAIN
# ============================================================================

def test_empty_transcript_skips_every_tier():
	outcome = _run(lambda: assess_speech(TARGET, "  ...  "))
	assert outcome.method == "none"
	assert outcome.result.overall_score == 0


def test_local_scoring_when_ai_disabled():
	outcome = _run(lambda: assess_speech(TARGET, "I like to eat rice", use_ai=False))
	assert outcome.method == "local"
	assert outcome.result == compose_assessment("I like to eat rice", TARGET)


def test_repeated_words_in_target_score_perfectly():
	outcome = _run(lambda: assess_speech("She had had enough", "She had had enough", use_ai=False))
	assert outcome.result.transcription == "She had had enough"
	assert outcome.result.accuracy == 100
	assert outcome.result.completeness == 100
	assert all(w.is_correct for w in outcome.result.word_assessments)


def test_local_scoring_when_no_provider_configured():
	outcome = _run(lambda: assess_speech(TARGET, "I like to eat rice"))
	assert outcome.method == "local"


def test_transcript_is_deduplicated_before_scoring():
	outcome = _run(lambda: assess_speech(TARGET, "I like like to eat rice rice", use_ai=False))
	assert outcome.result.transcription == "I like to eat rice"
	assert outcome.result.accuracy == 100


def test_ai_result_is_used(offline_settings):
	offline_settings.gemini_api_key = "test-key"
	seen = []

	def handler(request):
		seen.append(json.loads(request.content))
		return httpx.Response(200, json=_gemini_body(AI_PAYLOAD))

	async def scenario():
		client = GeminiClient(transport=httpx.MockTransport(handler))
		try:
			return await assess_speech(TARGET, "I like to eat rice", client=client)
		finally:
			await client.aclose()

	outcome = _run(scenario)
	assert outcome.method == "ai"
	assert outcome.model == offline_settings.gemini_model
	assert outcome.result.overall_score == 91
	assert "systemInstruction" in seen[0]


def test_secondary_model_after_primary_outage(offline_settings):
	offline_settings.gemini_api_key = "test-key"
	offline_settings.openrouter_api_key = "router-key"
	calls = {"gemini": 0, "openrouter": 0}

	def handler(request):
		if request.url.host == "openrouter.ai":
			calls["openrouter"] += 1
			assert request.headers["Authorization"] == "Bearer router-key"
			return httpx.Response(200, json=_openrouter_body(AI_PAYLOAD))
		calls["gemini"] += 1
		return httpx.Response(503, json={"error": "overloaded"})

	async def scenario():
		client = GeminiClient(transport=httpx.MockTransport(handler))
		try:
			return await assess_speech(TARGET, "I like to eat rice", client=client)
		finally:
			await client.aclose()

	outcome = _run(scenario)
	assert outcome.method == "ai"
	assert outcome.model == offline_settings.openrouter_model
	assert calls == {"gemini": 3, "openrouter": 1}


def test_implausible_ai_score_loses_to_local(offline_settings):
	offline_settings.gemini_api_key = "test-key"
	low = {"overallScore": 10, "accuracy": 10, "fluency": 10, "completeness": 10, "prosody": 10}

	async def scenario():
		client = GeminiClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=_gemini_body(low))))
		try:
			return await assess_speech(TARGET, "I like to eat rice", client=client)
		finally:
			await client.aclose()

	outcome = _run(scenario)
	assert outcome.method == "local"
	assert outcome.result.overall_score == 88


def test_low_ai_score_kept_when_local_is_lower(offline_settings, monkeypatch):
	offline_settings.gemini_api_key = "test-key"
	low = {"overallScore": 20, "accuracy": 20, "fluency": 20, "completeness": 20, "prosody": 20}
	monkeypatch.setattr(
		assessment,
		"compose_assessment",
		lambda *a, **kw: failed_assessment(TARGET, "I like to eat rice"),
	)

	async def scenario():
		client = GeminiClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=_gemini_body(low))))
		try:
			return await assess_speech(TARGET, "I like to eat rice", client=client)
		finally:
			await client.aclose()

	outcome = _run(scenario)
	assert outcome.method == "ai"
	assert outcome.result.overall_score == 20


def test_unparseable_ai_answer_falls_back_to_local(offline_settings):
	offline_settings.gemini_api_key = "test-key"

	async def scenario():
		client = GeminiClient(
			transport=httpx.MockTransport(lambda r: httpx.Response(200, json=_gemini_body("I cannot grade this")))
		)
		try:
			return await assess_speech(TARGET, "I like to eat rice", client=client)
		finally:
			await client.aclose()

	assert _run(scenario).method == "local"


def test_placeholder_when_local_scoring_fails(monkeypatch):
	def broken(*args, **kwargs):
		raise RuntimeError("scorer unavailable")

	monkeypatch.setattr(assessment, "compose_assessment", broken)
	outcome = _run(lambda: assess_speech(TARGET, "I like rice", use_ai=False, rng=random.Random(1)))
	assert outcome.method == "placeholder"
	assert outcome.result.overall_score == 75
	assert outcome.result.transcription == "I like rice"


def test_zero_result_when_everything_fails(monkeypatch):
	def broken(*args, **kwargs):
		raise RuntimeError("unavailable")

	monkeypatch.setattr(assessment, "compose_assessment", broken)
	monkeypatch.setattr(assessment, "placeholder_assessment", broken)
	outcome = _run(lambda: assess_speech(TARGET, "I like rice", use_ai=False))
	assert outcome.method == "none"
	assert outcome.result.overall_score == 0
