"""Gemini generative-language provider."""

from typing import Any

import httpx

from callcoach.config import Settings
from callcoach.core.ai.base import AIProvider, CompletionResult
from callcoach.core.errors import ProviderError
from callcoach.core.logging import get_logger

logger = get_logger(__name__)

SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
]
SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"


class GeminiProvider(AIProvider):
    """
    Gemini ``generateContent`` over the REST API.

    Sends a single text part with a fixed generation config and safety
    settings. Returns the first candidate's first text part.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model: str = "gemini-2.0-flash-exp",
        temperature: float = 0.7,
        top_k: int = 40,
        top_p: float = 0.95,
        max_output_tokens: int = 2048,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.model = model
        self.generation_config = {
            "temperature": temperature,
            "topK": top_k,
            "topP": top_p,
            "maxOutputTokens": max_output_tokens,
        }
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "GeminiProvider":
        return cls(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            top_k=settings.gemini_top_k,
            top_p=settings.gemini_top_p,
            max_output_tokens=settings.gemini_max_output_tokens,
            timeout=settings.provider_timeout_seconds,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "gemini"

    def build_request(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(self.generation_config),
            "safetySettings": [
                {"category": category, "threshold": SAFETY_THRESHOLD}
                for category in SAFETY_CATEGORIES
            ],
        }

    async def complete(self, prompt: str, **kwargs: Any) -> CompletionResult:
        if not self._api_key:
            raise ProviderError("Gemini API key not configured")

        url = f"{self._base_url}/models/{self.model}:generateContent"

        try:
            response = await self._client.post(
                url,
                params={"key": self._api_key},
                json=self.build_request(prompt),
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning("gemini_request_failed", status_code=response.status_code)
            raise ProviderError(
                f"Gemini API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError("Gemini returned a non-JSON response") from e

        try:
            candidates = payload.get("candidates") or []
            first = candidates[0] if candidates else {}
            parts = (first.get("content") or {}).get("parts") or []
            text = parts[0].get("text", "") if parts else ""
            return CompletionResult(
                text=text or "",
                model=self.model,
                token_count=(payload.get("usageMetadata") or {}).get("totalTokenCount"),
                safety_ratings=first.get("safetyRatings") or [],
                raw_response=payload,
            )
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError("Gemini returned an unexpected response shape") from e

    async def aclose(self) -> None:
        await self._client.aclose()
