"""Context of a GitHub Actions run."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .git import GitRepo


class ActionError(Exception):
    """The workflow run cannot be handled."""

    pass


@dataclass
class ActionContext:
    """Values GitHub Actions exposes through the environment."""

    event_name: str
    repository: str
    actor: str
    token: str | None = None
    server_url: str = "https://github.com"
    api_url: str = "https://api.github.com"
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ActionContext:
        """Read the context of the current workflow run.

        Raises:
            ActionError: If a required variable is missing or the event
                payload cannot be read
        """
        environ = os.environ if environ is None else environ

        missing = [
            name
            for name in ("GITHUB_EVENT_NAME", "GITHUB_REPOSITORY", "GITHUB_ACTOR")
            if not environ.get(name)
        ]
        if missing:
            raise ActionError(
                f"Missing {', '.join(missing)}. Is this running inside GitHub Actions?"
            )

        payload: dict[str, Any] = {}
        event_path = environ.get("GITHUB_EVENT_PATH")
        if event_path:
            try:
                payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise ActionError(f"Cannot read event payload {event_path}: {e}") from e

        return cls(
            event_name=environ["GITHUB_EVENT_NAME"],
            repository=environ["GITHUB_REPOSITORY"],
            actor=environ["GITHUB_ACTOR"],
            token=environ.get("INPUT_GITHUB_TOKEN") or environ.get("GITHUB_TOKEN"),
            server_url=environ.get("GITHUB_SERVER_URL") or "https://github.com",
            api_url=environ.get("GITHUB_API_URL") or "https://api.github.com",
            payload=payload,
        )

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1]

    @property
    def host(self) -> str:
        return urlparse(self.server_url).hostname or "github.com"

    def require_push(self) -> None:
        """Raises ActionError unless the run was triggered by a push."""
        if self.event_name != "push":
            raise ActionError(
                f'Called on "{self.event_name}" event, but only "push" events are supported.'
            )

    def require_token(self) -> str:
        if not self.token:
            raise ActionError("GITHUB_TOKEN is required to read commit diffs")
        return self.token

    @property
    def pusher(self) -> Mapping[str, Any]:
        return self.payload.get("pusher") or {}

    def configure_git(self, repo: GitRepo) -> None:
        """Set the local git identity to the pusher's."""
        if self.pusher.get("email"):
            repo.set_config("user.email", self.pusher["email"])
        if self.pusher.get("name"):
            repo.set_config("user.name", self.pusher["name"])
