from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional, Tuple
from .settings import settings

logger = logging.getLogger(__name__)

AI_STUDIO_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
VERTEX_URL = (
	"https://{region}-aiplatform.googleapis.com/v1/projects/{project}"
	"/locations/{region}/publishers/google/models/{model}:generateContent"
)


class GeminiClient:
	"""Text-only Gemini calls, with OpenRouter as an optional second chance."""

	def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		if not settings.gemini_api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = settings.gemini_model
		self.url = self._endpoint()
		timeout = settings.gemini_timeout_seconds
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		if settings.openrouter_api_key:
			self._fallback_client = httpx.AsyncClient(timeout=timeout, transport=transport)

	def _endpoint(self) -> str:
		if settings.gemini_provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			return VERTEX_URL.format(region=region, project=project, model=self.model)
		return AI_STUDIO_URL.format(model=self.model)

	def _auth(self) -> Tuple[Dict[str, str], Dict[str, str]]:
		# AI Studio takes the key as a query param, Vertex as a header
		if settings.gemini_provider == "vertex":
			return {}, {"x-goog-api-key": settings.gemini_api_key}
		return {"key": settings.gemini_api_key}, {}

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def generate(self, prompt: str) -> str:
		params, headers = self._auth()
		payload = {"contents": [{"parts": [{"text": prompt}]}]}
		try:
			r = await self._client.post(self.url, params=params, headers=headers, json=payload)
			r.raise_for_status()
			return self._candidate_text(r)
		except (httpx.HTTPError, RuntimeError) as err:
			logger.warning("Gemini call to %s failed: %s", self.model, err)
			if self._fallback_client is None:
				raise
			return await self._fallback_generate(prompt, err)

	@staticmethod
	def _candidate_text(r: httpx.Response) -> str:
		try:
			return r.json()["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError):
			raise RuntimeError(f"Unexpected Gemini response: {r.text}")

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, primary_error: Exception) -> str:
		headers = {
			"Authorization": f"Bearer {settings.openrouter_api_key}",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		payload = {
			"model": settings.openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
		}
		logger.info("Falling back to OpenRouter model %s", settings.openrouter_model)
		try:
			r = await self._fallback_client.post(
				settings.openrouter_base_url,
				headers={k: v for k, v in headers.items() if v},
				json=payload,
			)
			r.raise_for_status()
			return r.json()["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			raise RuntimeError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
