from __future__ import annotations
import asyncio
import logging
import random
import httpx
from typing import Any, Callable, Dict, Optional
from .settings import settings

logger = logging.getLogger(__name__)

# Statuses worth another attempt: rate limiting and transient upstream failures
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class AssessmentProviderError(RuntimeError):
	"""Raised when neither the primary nor the secondary model produced text."""


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		openrouter_api_key: Optional[str] = None,
		max_retries: Optional[int] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self.max_retries = settings.ai_max_retries if max_retries is None else max_retries
		self._openrouter_api_key = openrouter_api_key or settings.openrouter_api_key
		self._fallback_enabled = bool(self._openrouter_api_key)
		if not self.api_key and not self._fallback_enabled:
			raise AssessmentProviderError("Neither GEMINI_API_KEY nor OPENROUTER_API_KEY is configured")
		timeout = settings.ai_timeout_seconds
		self._client: Optional[httpx.AsyncClient] = (
			httpx.AsyncClient(timeout=timeout, transport=transport) if self.api_key else None
		)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		# Model that produced the last successful answer
		self.last_model: Optional[str] = None
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	async def generate(
		self,
		prompt: str,
		*,
		system: Optional[str] = None,
		parse: Optional[Callable[[str], Any]] = None,
	) -> Any:
		"""Return model text for ``prompt``, trying Gemini first and OpenRouter second.

		When ``parse`` is given it is applied to the model text and its result is
		returned; a ``ValueError`` from it counts as a failed call, so an unusable
		Gemini answer still reaches the OpenRouter fallback.
		"""
		primary_error: Optional[Exception] = None
		if self._client is not None:
			try:
				text = await self._generate_primary(prompt, system)
				result = parse(text) if parse else text
				self.last_model = self.model
				return result
			except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as err:
				logger.warning("Gemini assessment call failed: %s", err)
				primary_error = err
		if not self._fallback_enabled:
			raise AssessmentProviderError("Gemini call failed and no fallback configured") from primary_error
		return await self._fallback_generate(prompt, system, primary_error, parse)

	async def _generate_primary(self, prompt: str, system: Optional[str]) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		payload: Dict[str, Any] = {
			"contents": [{"role": "user", "parts": [{"text": prompt}]}],
			"generationConfig": {"temperature": 0.3, "responseMimeType": "application/json"},
		}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		r = await self._post_with_retry(self._client, self.base_url, params=params, headers=headers, json=payload)
		data = r.json()
		return data["candidates"][0]["content"]["parts"][0]["text"]

	async def _fallback_generate(
		self,
		prompt: str,
		system: Optional[str],
		primary_error: Optional[Exception],
		parse: Optional[Callable[[str], Any]] = None,
	) -> Any:
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		messages = [{"role": "user", "content": prompt}]
		if system:
			messages.insert(0, {"role": "system", "content": system})
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
			"temperature": 0.2,
		}
		try:
			r = await self._post_with_retry(self._fallback_client, self._openrouter_base_url, headers=headers, json=payload)
			data = r.json()
			text = data["choices"][0]["message"]["content"]
			result = parse(text) if parse else text
			self.last_model = self._openrouter_model
			return result
		except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as fallback_err:
			logger.warning("OpenRouter assessment call failed: %s", fallback_err)
			if primary_error is not None:
				raise AssessmentProviderError(
					f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise AssessmentProviderError(f"OpenRouter call failed ({fallback_err})") from fallback_err

	async def _post_with_retry(self, client: httpx.AsyncClient, url: str, **kwargs: Any) -> httpx.Response:
		attempt = 0
		while True:
			try:
				r = await client.post(url, **kwargs)
				r.raise_for_status()
				return r
			except httpx.HTTPStatusError as err:
				if attempt >= self.max_retries or err.response.status_code not in RETRYABLE_STATUS_CODES:
					raise
				last_error: Exception = err
			except httpx.RequestError as err:
				if attempt >= self.max_retries:
					raise
				last_error = err
			delay = min(settings.ai_retry_initial_delay * (2 ** attempt), settings.ai_retry_max_delay)
			delay += random.uniform(0, 0.3 * delay)
			attempt += 1
			logger.info("Retrying %s in %.2fs (attempt %d/%d): %s", url, delay, attempt, self.max_retries, last_error)
			await asyncio.sleep(delay)

	async def aclose(self) -> None:
		if self._client is not None:
			await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()
