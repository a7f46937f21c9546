"""Ollama local provider for commit message generation."""

from __future__ import annotations

import httpx

from .base import AIProvider, GenerationError, ProviderConfig, check_response


class OllamaProvider(AIProvider):
    """Ollama local provider for commit message generation."""

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = "http://localhost:11434",
        config: ProviderConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Ollama provider.

        Args:
            model: Model to use (default: llama3.2)
            base_url: Ollama server URL (default: http://localhost:11434)
            config: Sampling configuration
            transport: Custom httpx transport (used by tests)
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.config = config or ProviderConfig(timeout=120.0)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=self.config.timeout,
            transport=transport,
        )

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Generate a commit message using Ollama API.

        Raises:
            ConnectionError: If cannot connect to Ollama
            GenerationError: If no message was generated
        """
        try:
            response = await self._client.post(
                "/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                    "options": {
                        "temperature": self.config.temperature,
                        "num_predict": self.config.max_tokens,
                    },
                },
            )
        except httpx.ConnectError as e:
            raise ConnectionError(
                f"Cannot connect to Ollama at {self.base_url}. "
                "Make sure Ollama is running (run 'ollama serve' in terminal)"
            ) from e

        check_response(response, "Ollama")

        data = response.json()
        message = data.get("message", {}).get("content", "").strip()

        if not message:
            raise GenerationError("No commit message generated from Ollama")

        return message

    def get_name(self) -> str:
        """Get the display name for this provider."""
        return f"Ollama ({self.model})"

    async def aclose(self) -> None:
        await self._client.aclose()
