"""Deepgram and Gemini clients against mocked HTTP transports."""

import json

import httpx
import pytest

from callcoach.core.ai.deepgram import DeepgramProvider
from callcoach.core.ai.gemini import GeminiProvider
from callcoach.core.errors import ProviderError

DEEPGRAM_RESPONSE = {
    "metadata": {"duration": 3.2},
    "results": {
        "channels": [
            {
                "alternatives": [
                    {
                        "transcript": "Hello, this is a test call.",
                        "confidence": 0.92,
                        "words": [
                            {"word": w, "start": float(i), "end": float(i + 1), "confidence": 0.9}
                            for i, w in enumerate(["hello", "this", "is", "a", "test", "call"])
                        ],
                    }
                ]
            }
        ]
    },
}

GEMINI_RESPONSE = {
    "candidates": [
        {
            "content": {"parts": [{"text": "Great call."}]},
            "safetyRatings": [{"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"}],
        }
    ],
    "usageMetadata": {"totalTokenCount": 1234},
}


@pytest.mark.integration
class TestDeepgramProvider:
    @pytest.mark.asyncio
    async def test_transcribe_posts_raw_audio(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json=DEEPGRAM_RESPONSE)

        provider = DeepgramProvider(api_key="dg-key", transport=httpx.MockTransport(handler))
        result = await provider.transcribe(b"ID3audio", "audio/mpeg")
        await provider.aclose()

        request = captured["request"]
        assert request.headers["Authorization"] == "Token dg-key"
        assert request.headers["Content-Type"] == "audio/mpeg"
        assert request.content == b"ID3audio"
        assert request.url.params["model"] == "nova-2"
        assert request.url.params["language"] == "en"
        assert request.url.params["smart_format"] == "true"
        assert request.url.params["punctuate"] == "true"

        assert result.text == "Hello, this is a test call."
        assert result.confidence == 0.92
        assert result.word_count == 6
        assert result.duration == 3.2

    @pytest.mark.asyncio
    async def test_http_error_raises_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="Invalid credentials"))
        provider = DeepgramProvider(api_key="bad", transport=transport)

        with pytest.raises(ProviderError, match="Deepgram API error: 401"):
            await provider.transcribe(b"audio", "audio/wav")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"results": {}}))
        provider = DeepgramProvider(api_key="dg-key", transport=transport)

        with pytest.raises(ProviderError, match="unexpected response shape"):
            await provider.transcribe(b"audio", "audio/wav")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_malformed_word_entry_raises_provider_error(self):
        alternative = {"transcript": "hello", "words": ["hello"]}
        body = {"results": {"channels": [{"alternatives": [alternative]}]}}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = DeepgramProvider(api_key="dg-key", transport=transport)

        with pytest.raises(ProviderError, match="unexpected response shape"):
            await provider.transcribe(b"audio", "audio/wav")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_null_metadata_has_no_duration(self):
        body = {**DEEPGRAM_RESPONSE, "metadata": None}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = DeepgramProvider(api_key="dg-key", transport=transport)

        result = await provider.transcribe(b"audio", "audio/wav")
        await provider.aclose()

        assert result.duration is None
        assert result.text == "Hello, this is a test call."

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        provider = DeepgramProvider(api_key="", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderError, match="not configured"):
            await provider.transcribe(b"audio", "audio/wav")
        await provider.aclose()


@pytest.mark.integration
class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_complete_sends_generation_config(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json=GEMINI_RESPONSE)

        provider = GeminiProvider(api_key="gm-key", transport=httpx.MockTransport(handler))
        result = await provider.complete("Score this call")
        await provider.aclose()

        request = captured["request"]
        assert request.url.path.endswith("/models/gemini-2.0-flash-exp:generateContent")
        assert request.url.params["key"] == "gm-key"
        body = json.loads(request.content)
        assert body["contents"] == [{"parts": [{"text": "Score this call"}]}]
        assert body["generationConfig"] == {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 2048,
        }
        assert {s["threshold"] for s in body["safetySettings"]} == {"BLOCK_MEDIUM_AND_ABOVE"}
        assert len(body["safetySettings"]) == 4

        assert result.text == "Great call."
        assert result.token_count == 1234
        assert result.safety_ratings[0]["probability"] == "NEGLIGIBLE"

    @pytest.mark.asyncio
    async def test_no_candidates_gives_empty_text(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        provider = GeminiProvider(api_key="gm-key", transport=transport)

        result = await provider.complete("prompt")
        await provider.aclose()

        assert result.text == ""
        assert result.token_count is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": [{"content": {"parts": ["Great call."]}}]},
            {"candidates": ["Great call."]},
            {"candidates": [{"content": "Great call."}]},
        ],
    )
    async def test_malformed_candidates_raise_provider_error(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = GeminiProvider(api_key="gm-key", transport=transport)

        with pytest.raises(ProviderError, match="unexpected response shape"):
            await provider.complete("prompt")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_http_error_raises_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(429, text="quota"))
        provider = GeminiProvider(api_key="gm-key", transport=transport)

        with pytest.raises(ProviderError, match="Gemini API error: 429"):
            await provider.complete("prompt")
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_network_error_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = GeminiProvider(api_key="gm-key", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderError, match="Gemini request failed"):
            await provider.complete("prompt")
        await provider.aclose()
