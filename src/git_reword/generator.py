"""Commit message generation from a single diff."""

from __future__ import annotations

from .config import GenerationConfig
from .prompts import build_messages
from .providers import AIProvider


class MessageGenerator:
    """Turns a diff into a candidate commit message through an AI provider.

    Errors raised by the provider propagate unchanged so callers can tell a
    RateLimitError apart from a fatal ProviderAuthError.
    """

    def __init__(self, provider: AIProvider, config: GenerationConfig | None = None) -> None:
        self.provider = provider
        self.config = config or GenerationConfig()

    async def generate(self, diff: str) -> str:
        return await self.provider.complete(build_messages(diff, self.config))

    async def aclose(self) -> None:
        await self.provider.aclose()
