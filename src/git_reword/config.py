"""Configuration values passed explicitly through the rewrite run."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .providers import ProviderConfig

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
    """Read a boolean environment variable."""
    environ = os.environ if environ is None else environ
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY


@dataclass(frozen=True)
class GenerationConfig:
    """Settings that shape the generated message."""

    language: str = "en"
    emoji: bool = False
    description: bool = False
    max_diff_chars: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GenerationConfig:
        """Build from GIT_REWORD_* environment variables."""
        environ = os.environ if environ is None else environ
        return cls(
            language=environ.get("GIT_REWORD_LANGUAGE") or "en",
            emoji=env_flag("GIT_REWORD_EMOJI", environ=environ),
            description=env_flag("GIT_REWORD_DESCRIPTION", environ=environ),
        )


@dataclass
class RewordOptions:
    """Options for a rewrite run."""

    provider: str = "openai"
    api_key: str | None = None
    model: str | None = None
    ollama_url: str = "http://localhost:11434"
    provider_config: ProviderConfig | None = None

    generation: GenerationConfig = field(default_factory=GenerationConfig)

    # Retry bounds, None keeps retrying forever
    max_attempts: int | None = None
    max_failures: int | None = None

    dry_run: bool = False
    verbose: bool = False
    quiet: bool = False
    push: bool = True
    remote: str | None = None
    remote_branch: str | None = None
    backup: bool = False
    on_stale: str = "refuse"
