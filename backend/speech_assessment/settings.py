from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Secondary assessment model via OpenRouter (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="google/gemma-3-12b-it:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Speech Assessment", validation_alias="OPENROUTER_TITLE")

	# Provider call policy
	ai_timeout_seconds: float = Field(default=30.0, validation_alias="AI_TIMEOUT_SECONDS")
	ai_max_retries: int = Field(default=2, ge=0, validation_alias="AI_MAX_RETRIES")
	ai_retry_initial_delay: float = Field(default=1.0, ge=0, validation_alias="AI_RETRY_INITIAL_DELAY")
	ai_retry_max_delay: float = Field(default=10.0, ge=0, validation_alias="AI_RETRY_MAX_DELAY")
	# AI results scoring below this are treated as implausible
	ai_acceptance_threshold: int = Field(default=30, ge=0, le=100, validation_alias="AI_ACCEPTANCE_THRESHOLD")

	# Sessions idle longer than this are dropped from the in-process store
	session_max_age_seconds: float = Field(default=3600.0, gt=0, validation_alias="SESSION_MAX_AGE_SECONDS")

	assessment_language: str = Field(default="en", validation_alias="ASSESSMENT_LANGUAGE")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
