"""Fetch the patch each commit introduces relative to its parent."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

import httpx

from .git import DiffRecord, GitRepo


class DiffFetcher(Protocol):
    async def fetch(self, commit_id: str) -> DiffRecord: ...


class LocalDiffFetcher:
    """Reads diffs from the local repository with ``git show``."""

    def __init__(self, repo: GitRepo) -> None:
        self.repo = repo

    async def fetch(self, commit_id: str) -> DiffRecord:
        return DiffRecord(id=commit_id, diff=await self.repo.show_patch(commit_id))


class GitHubDiffFetcher:
    """Reads diffs from the GitHub REST API using the diff media type."""

    DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            owner: Repository owner
            repo: Repository name
            token: Token sent as a bearer credential (anonymous if None)
            api_url: REST API root, differs on GitHub Enterprise
            transport: Custom httpx transport (used by tests)
        """
        self.owner = owner
        self.repo = repo
        headers = {"Accept": self.DIFF_MEDIA_TYPE}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=60.0,
            transport=transport,
        )

    async def fetch(self, commit_id: str) -> DiffRecord:
        """Fetch one commit's diff.

        Raises:
            httpx.HTTPStatusError: If the commit cannot be resolved
        """
        response = await self._client.get(f"/repos/{self.owner}/{self.repo}/commits/{commit_id}")
        response.raise_for_status()
        return DiffRecord(id=commit_id, diff=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()


async def fetch_all(fetcher: DiffFetcher, commit_ids: Sequence[str]) -> list[DiffRecord]:
    """Fetch every diff concurrently.

    The batch is all-or-nothing: the first failure propagates and no partial
    result is returned.
    """
    return list(await asyncio.gather(*(fetcher.fetch(commit_id) for commit_id in commit_ids)))
