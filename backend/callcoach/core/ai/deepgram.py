"""Deepgram speech-to-text provider."""

from typing import Any

import httpx

from callcoach.config import Settings
from callcoach.core.ai.base import AIProvider, TranscriptionResult, TranscriptionWord
from callcoach.core.errors import ProviderError
from callcoach.core.logging import get_logger

logger = get_logger(__name__)


class DeepgramProvider(AIProvider):
    """
    Deepgram pre-recorded transcription over the REST API.

    The raw audio bytes are posted as the request body with the asset's
    MIME type as ``Content-Type``. The first alternative of the first
    channel is used.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepgram.com/v1/listen",
        model: str = "nova-2",
        language: str = "en",
        smart_format: bool = True,
        punctuate: bool = True,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self.model = model
        self.language = language
        self._smart_format = smart_format
        self._punctuate = punctuate
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "DeepgramProvider":
        return cls(
            api_key=settings.deepgram_api_key,
            base_url=settings.deepgram_base_url,
            model=settings.deepgram_model,
            language=settings.deepgram_language,
            smart_format=settings.deepgram_smart_format,
            punctuate=settings.deepgram_punctuate,
            timeout=settings.provider_timeout_seconds,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "deepgram"

    async def transcribe(
        self,
        audio_data: bytes,
        mime_type: str,
        language: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> TranscriptionResult:
        """
        Transcribe audio bytes.

        Args:
            audio_data: Raw audio bytes
            mime_type: Content type sent to Deepgram (e.g. "audio/mpeg")
            language: Language code, defaults to the configured one
            model: Model name, defaults to the configured one

        Returns:
            TranscriptionResult; ``text`` may be empty if nothing was recognised
        """
        if not self._api_key:
            raise ProviderError("Deepgram API key not configured")

        language = language or self.language
        model = model or self.model
        params = {
            "model": model,
            "language": language,
            "smart_format": str(self._smart_format).lower(),
            "punctuate": str(self._punctuate).lower(),
        }

        try:
            response = await self._client.post(
                self._base_url,
                params=params,
                content=audio_data,
                headers={
                    "Authorization": f"Token {self._api_key}",
                    "Content-Type": mime_type,
                },
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Deepgram request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning("deepgram_request_failed", status_code=response.status_code)
            raise ProviderError(
                f"Deepgram API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            alternative = payload["results"]["channels"][0]["alternatives"][0]
            words = [
                TranscriptionWord(
                    word=w.get("word", ""),
                    start=w.get("start", 0.0),
                    end=w.get("end", 0.0),
                    confidence=w.get("confidence"),
                )
                for w in alternative.get("words") or []
            ]
            return TranscriptionResult(
                text=(alternative.get("transcript") or "").strip(),
                language=language,
                confidence=alternative.get("confidence"),
                duration=(payload.get("metadata") or {}).get("duration"),
                words=words,
                model=model,
                raw_response=payload,
            )
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError("Deepgram returned an unexpected response shape") from e

    async def aclose(self) -> None:
        await self._client.aclose()
