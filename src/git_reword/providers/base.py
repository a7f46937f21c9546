"""Base protocol, errors and types for AI providers."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx


@dataclass
class ProviderConfig:
    """Sampling configuration for an AI provider."""

    temperature: float = 0.3
    max_tokens: int = 500
    timeout: float = 60.0


class ProviderConfigError(ValueError):
    """Provider cannot be constructed (unknown name, missing API key)."""

    pass


class GenerationError(Exception):
    """The backend failed to produce a commit message."""

    pass


class RateLimitError(GenerationError):
    """The backend answered with "too many requests"."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderAuthError(GenerationError):
    """The backend rejected the credentials."""

    pass


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def check_response(response: httpx.Response, provider_name: str) -> None:
    """Raise the error matching a failed backend response.

    Args:
        response: The HTTP response to inspect
        provider_name: Display name used in error messages

    Raises:
        RateLimitError: On HTTP 429
        ProviderAuthError: On HTTP 401 or 403
        httpx.HTTPStatusError: On any other non-2xx status
    """
    if response.status_code == 429:
        raise RateLimitError(
            f"{provider_name} rate limit reached (429 Too Many Requests)",
            retry_after=_parse_retry_after(response.headers.get("retry-after")),
        )
    if response.status_code in (401, 403):
        raise ProviderAuthError(
            f"{provider_name} rejected the API key ({response.status_code})"
        )
    response.raise_for_status()


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    @abstractmethod
    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Run a chat completion and return the stripped reply.

        Args:
            messages: Chat messages (role/content dicts), system prompt first

        Returns:
            The generated commit message

        Raises:
            RateLimitError: If the backend is throttling requests
            GenerationError: If no usable message was produced
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Get the display name for this provider."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class OpenAICompatibleProvider(AIProvider):
    """Base class for OpenAI-compatible API providers.

    This base class handles the common logic for providers that use
    OpenAI-compatible chat completions API (OpenAI, DeepSeek, etc.).

    Subclasses only need to define:
        - BASE_URL: The API base URL
        - ENV_VAR_NAME: Environment variable name for API key
        - DEFAULT_MODEL: Default model name
        - PROVIDER_NAME: Display name for the provider
    """

    BASE_URL: str
    ENV_VAR_NAME: str
    DEFAULT_MODEL: str
    PROVIDER_NAME: str

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        config: ProviderConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: API key (defaults to environment variable)
            model: Model to use (defaults to DEFAULT_MODEL)
            config: Sampling configuration
            transport: Custom httpx transport (used by tests)

        Raises:
            ProviderConfigError: If no API key is provided or found in environment
        """
        self.api_key = api_key or os.environ.get(self.ENV_VAR_NAME)
        if not self.api_key:
            raise ProviderConfigError(
                f"{self.PROVIDER_NAME} API key is required. "
                f"Set {self.ENV_VAR_NAME} environment variable or pass it as an option."
            )
        self.model = model or self.DEFAULT_MODEL
        self.config = config or ProviderConfig()
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
            },
            timeout=self.config.timeout,
            transport=transport,
        )

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Generate a commit message using the chat completions API."""
        response = await self._client.post(
            "chat/completions",
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
            },
        )
        check_response(response, self.PROVIDER_NAME)

        data = response.json()
        message = (data["choices"][0]["message"]["content"] or "").strip()

        if not message:
            raise GenerationError(f"No commit message generated from {self.PROVIDER_NAME}")

        return message

    def get_name(self) -> str:
        """Get the display name for this provider."""
        return f"{self.PROVIDER_NAME} ({self.model})"

    async def aclose(self) -> None:
        await self._client.aclose()
