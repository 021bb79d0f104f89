"""
LLM Client
Unified interface for generating text via OpenAI, Anthropic, and Grok (xAI) APIs
Single attempt per call: retry policy belongs to the caller
"""
import logging
from typing import Optional
from enum import Enum

import httpx
import openai

from app.core.config import Settings


class LLMProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROK = "grok"


class LLMClientError(Exception):
    """Base exception for LLM client errors"""
    pass


class LLMTimeoutError(LLMClientError):
    """Raised when LLM request times out"""
    pass


class LLMAPIError(LLMClientError):
    """Raised when LLM API returns an error or an empty body"""
    pass


# API Endpoints
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
GROK_API_URL = "https://api.x.ai/v1/chat/completions"

# Model defaults
DEFAULT_MODELS = {
    LLMProvider.OPENAI: "gpt-4o",
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.GROK: "grok-3-mini-beta",
}

SYSTEM_PROMPT = "Return ONLY valid JSON."


class LLMClient:
    """
    Thin async client over a hosted text-generation model

    OpenAI goes through the official SDK; Anthropic and Grok are called
    directly with httpx.
    """

    def __init__(
        self,
        provider: str,
        api_key: Optional[str],
        model: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize LLM client

        Args:
            provider: "openai", "anthropic" or "grok"
            api_key: API key for the provider (may be None; calls then fail)
            model: Model identifier (provider default if omitted)
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the reply
            http_client: Optional shared httpx client (used by tests)
            logger: Optional logger (module logger by default)
        """
        try:
            self.provider = LLMProvider(provider.lower())
        except ValueError:
            raise ValueError(
                f"Invalid provider: {provider}. "
                f"Supported providers: {[p.value for p in LLMProvider]}"
            )

        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.provider]
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.http_client = http_client
        self.logger = logger or logging.getLogger(__name__)
        self._openai_client: Optional[openai.AsyncOpenAI] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "LLMClient":
        """Build a client for the provider named in settings"""
        api_keys = {
            "openai": settings.openai_api_key,
            "anthropic": settings.anthropic_api_key,
            "grok": settings.grok_api_key,
        }
        return cls(
            provider=settings.llm_provider,
            api_key=api_keys.get(settings.llm_provider),
            model=settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            **kwargs
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt

        Args:
            prompt: The prompt to send

        Returns:
            Raw string output from the LLM (no parsing)

        Raises:
            LLMClientError: If API key is missing
            LLMTimeoutError: If request times out
            LLMAPIError: If API returns an error status or an empty body
        """
        if not self.api_key:
            raise LLMClientError(f"No API key configured for provider '{self.provider.value}'")

        self.logger.info(
            f"🤖 Generating via {self.provider.value} "
            f"(model: {self.model}, timeout: {self.timeout}s)"
        )

        if self.provider == LLMProvider.OPENAI:
            return await self._call_openai(prompt)

        if self.provider == LLMProvider.ANTHROPIC:
            return await self._call_anthropic(prompt)

        return await self._call_openai_compatible(prompt, GROK_API_URL, "Grok")

    async def _post(self, url: str, headers: dict, payload: dict) -> dict:
        if self.http_client is not None:
            response = await self.http_client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    async def _call_openai(self, prompt: str) -> str:
        """Call OpenAI Chat Completions through the SDK"""
        if self._openai_client is None:
            self._openai_client = openai.AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0
            )

        try:
            response = await self._openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except openai.APITimeoutError as e:
            self.logger.error(f"❌ OpenAI request timed out after {self.timeout}s")
            raise LLMTimeoutError(f"OpenAI request timed out: {e}")
        except openai.APIError as e:
            self.logger.error(f"❌ OpenAI API error: {e}")
            raise LLMAPIError(f"OpenAI API error: {e}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMAPIError("OpenAI returned an empty response")

        self.logger.info(f"✅ OpenAI response received ({len(content)} chars)")
        return content

    async def _call_openai_compatible(self, prompt: str, api_url: str, provider_name: str) -> str:
        """
        Call an OpenAI-compatible Chat Completions API over httpx

        Args:
            prompt: The prompt to send
            api_url: API endpoint URL
            provider_name: Name for logging

        Returns:
            Raw response content string
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt}
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens
        }

        try:
            data = await self._post(api_url, headers, payload)
        except httpx.TimeoutException as e:
            self.logger.error(f"❌ {provider_name} request timed out after {self.timeout}s")
            raise LLMTimeoutError(f"{provider_name} request timed out: {e}")
        except httpx.HTTPStatusError as e:
            self.logger.error(f"❌ {provider_name} API error: {e.response.status_code}")
            raise LLMAPIError(f"{provider_name} API error: {e.response.status_code}")
        except httpx.HTTPError as e:
            self.logger.error(f"❌ {provider_name} transport error: {e}")
            raise LLMAPIError(f"{provider_name} transport error: {e}")
        except ValueError as e:
            raise LLMAPIError(f"{provider_name} returned a non-JSON body: {e}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise LLMAPIError(f"{provider_name} response has no message content")

        if not content:
            raise LLMAPIError(f"{provider_name} returned an empty response")

        self.logger.info(f"✅ {provider_name} response received ({len(content)} chars)")
        return content

    async def _call_anthropic(self, prompt: str) -> str:
        """Call Anthropic Messages API"""
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01"
        }

        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": prompt}
            ]
        }

        try:
            data = await self._post(ANTHROPIC_API_URL, headers, payload)
        except httpx.TimeoutException as e:
            self.logger.error(f"❌ Anthropic request timed out after {self.timeout}s")
            raise LLMTimeoutError(f"Anthropic request timed out: {e}")
        except httpx.HTTPStatusError as e:
            self.logger.error(f"❌ Anthropic API error: {e.response.status_code}")
            raise LLMAPIError(f"Anthropic API error: {e.response.status_code}")
        except httpx.HTTPError as e:
            self.logger.error(f"❌ Anthropic transport error: {e}")
            raise LLMAPIError(f"Anthropic transport error: {e}")
        except ValueError as e:
            raise LLMAPIError(f"Anthropic returned a non-JSON body: {e}")

        try:
            content = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise LLMAPIError("Anthropic response has no text content")

        if not content:
            raise LLMAPIError("Anthropic returned an empty response")

        self.logger.info(f"✅ Anthropic response received ({len(content)} chars)")
        return content

    def health_check(self) -> dict:
        """
        Check if the LLM provider is configured

        Returns:
            Health status dictionary
        """
        return {
            "provider": self.provider.value,
            "configured": self.configured,
            "model": self.model,
            "status": "ready" if self.configured else "not_configured"
        }
