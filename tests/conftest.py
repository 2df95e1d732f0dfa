# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from speech_assessment.scoring.session import SpeechSession
from speech_assessment.settings import settings


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch):
	# No provider keys and no retry sleeps unless a test opts in
	monkeypatch.setattr(settings, "gemini_api_key", None)
	monkeypatch.setattr(settings, "gemini_provider", "ai_studio")
	monkeypatch.setattr(settings, "openrouter_api_key", None)
	monkeypatch.setattr(settings, "ai_max_retries", 2)
	monkeypatch.setattr(settings, "ai_retry_initial_delay", 0.0)
	monkeypatch.setattr(settings, "ai_retry_max_delay", 0.0)
	monkeypatch.setattr(settings, "ai_acceptance_threshold", 30)
	monkeypatch.setattr(settings, "assessment_language", "en")
	monkeypatch.setattr(settings, "session_max_age_seconds", 3600.0)
	return settings


@pytest.fixture()
def session():
	return SpeechSession("I like to eat rice")


@pytest.fixture()
def app_client():
	from speech_assessment.main import app
	from speech_assessment.routers import speaking

	speaking._sessions.clear()
	client = TestClient(app)
	yield client
	app.dependency_overrides.clear()
	speaking._sessions.clear()
