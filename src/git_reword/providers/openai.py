"""OpenAI API provider for commit message generation."""

from .base import OpenAICompatibleProvider


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI API provider for commit message generation."""

    BASE_URL = "https://api.openai.com/v1/"
    ENV_VAR_NAME = "OPENAI_API_KEY"
    DEFAULT_MODEL = "gpt-4o-mini"
    PROVIDER_NAME = "OpenAI"
