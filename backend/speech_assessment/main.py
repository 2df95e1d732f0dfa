import logging

from fastapi import FastAPI

from .settings import settings
from .routers import speaking

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Speech Assessment API")
app.include_router(speaking.router)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"openrouter_configured": bool(settings.openrouter_api_key),
		"gemini_model": settings.gemini_model,
		"assessment_language": settings.assessment_language,
	}
