"""DeepSeek API provider for commit message generation."""

from .base import OpenAICompatibleProvider


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek API provider for commit message generation.

    DeepSeek API is OpenAI-compatible, so only the endpoint and the key
    variable differ. Supports models: deepseek-chat, deepseek-coder, deepseek-reasoner
    """

    BASE_URL = "https://api.deepseek.com/"
    ENV_VAR_NAME = "DEEPSEEK_API_KEY"
    DEFAULT_MODEL = "deepseek-chat"
    PROVIDER_NAME = "DeepSeek"
