"""Chat completion backends used to generate commit messages."""

from .base import (
    AIProvider,
    GenerationError,
    ProviderAuthError,
    ProviderConfig,
    ProviderConfigError,
    RateLimitError,
)
from .deepseek import DeepSeekProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

__all__ = [
    "AIProvider",
    "ProviderConfig",
    "ProviderConfigError",
    "GenerationError",
    "RateLimitError",
    "ProviderAuthError",
    "OpenAIProvider",
    "OllamaProvider",
    "DeepSeekProvider",
    "create_provider",
    "PROVIDERS",
]

PROVIDERS = ("openai", "deepseek", "ollama")


def create_provider(
    provider: str = "openai",
    api_key: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
    config: ProviderConfig | None = None,
) -> AIProvider:
    """Build the backend registered under ``provider``.

    Args:
        provider: One of PROVIDERS (case-insensitive)
        api_key: Key for hosted backends, read from their env var when None
        model: Model override, each backend has its own default
        base_url: Server URL, only used by ollama
        config: Sampling and timeout settings

    Raises:
        ProviderConfigError: If the name is unknown or a hosted backend has
            no API key
    """
    name = provider.lower()
    if name not in PROVIDERS:
        raise ProviderConfigError(
            f"Unknown provider: {provider}. Supported providers: {', '.join(PROVIDERS)}"
        )

    if name == "ollama":
        kwargs = {"base_url": base_url} if base_url else {}
        return OllamaProvider(model=model or "llama3.2", config=config, **kwargs)

    hosted = OpenAIProvider if name == "openai" else DeepSeekProvider
    return hosted(api_key=api_key, model=model, config=config)
