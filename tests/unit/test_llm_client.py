# =============================================================================
# TESTS - LLM Client
# =============================================================================
# Provider calls go through an httpx.MockTransport
# =============================================================================

import json

import httpx
import pytest

from app.services.llm_client import (
    ANTHROPIC_API_URL,
    GROK_API_URL,
    LLMAPIError,
    LLMClient,
    LLMClientError,
    LLMTimeoutError,
)


def client_with(handler, provider: str = "anthropic", api_key: str = "test-key") -> LLMClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LLMClient(provider=provider, api_key=api_key, http_client=http_client)


class TestConfiguration:

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            LLMClient(provider="mystery", api_key="k")

    def test_from_settings_picks_provider_key(self, settings):
        settings.llm_provider = "grok"
        settings.grok_api_key = "grok-key"

        client = LLMClient.from_settings(settings)

        assert client.api_key == "grok-key"
        assert client.timeout == 60.0
        assert client.model == "grok-3-mini-beta"

    def test_health_check_reports_missing_key(self):
        client = LLMClient(provider="openai", api_key=None)

        assert client.health_check()["status"] == "not_configured"

    @pytest.mark.asyncio
    async def test_generate_without_key_fails(self):
        client = LLMClient(provider="anthropic", api_key=None)

        with pytest.raises(LLMClientError):
            await client.generate("prompt")


class TestAnthropic:

    @pytest.mark.asyncio
    async def test_returns_text_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": [{"type": "text", "text": "{\"q\": 1}"}]})

        text = await client_with(handler).generate("Write a question")

        assert text == '{"q": 1}'
        assert seen["url"] == ANTHROPIC_API_URL
        assert seen["headers"]["x-api-key"] == "test-key"
        assert seen["body"]["messages"][0]["content"] == "Write a question"

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request):
            return httpx.Response(529, json={"error": "overloaded"})

        with pytest.raises(LLMAPIError):
            await client_with(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(LLMTimeoutError):
            await client_with(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_empty_content(self):
        def handler(request):
            return httpx.Response(200, json={"content": []})

        with pytest.raises(LLMAPIError):
            await client_with(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(LLMAPIError):
            await client_with(handler).generate("prompt")


class TestGrok:

    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"choices": [{"message": {"content": "reply"}}]})

        text = await client_with(handler, provider="grok", api_key="grok-key").generate("prompt")

        assert text == "reply"
        assert seen["url"] == GROK_API_URL
        assert seen["auth"] == "Bearer grok-key"

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(LLMAPIError):
            await client_with(handler, provider="grok").generate("prompt")
