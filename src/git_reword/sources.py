"""Sources of commits to improve, always oldest first."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .git import CommitRef, GitRepo


class CommitSource(Protocol):
    def list(self) -> list[CommitRef]: ...


class PushEventSource:
    """Commits listed in a push event payload.

    The payload lists commits oldest first already.
    """

    def __init__(self, payload: Mapping[str, Any]) -> None:
        self.payload = payload

    def list(self) -> list[CommitRef]:
        return [
            CommitRef(id=commit["id"], original_message=commit.get("message", ""))
            for commit in self.payload.get("commits") or []
        ]


class LocalRangeSource:
    """Non-merge commits of the current branch.

    Either everything after ``base`` or the last ``max_commits`` commits
    (the whole history when neither is set).
    """

    def __init__(
        self,
        repo: GitRepo,
        base: str | None = None,
        max_commits: int | None = None,
    ) -> None:
        self.repo = repo
        self.base = base
        self.max_commits = max_commits

    def list(self) -> list[CommitRef]:
        return [
            CommitRef(id=commit_hash, original_message=self.repo.get_commit_full_message(commit_hash))
            for commit_hash in self.repo.get_commits(self.base, self.max_commits)
        ]
