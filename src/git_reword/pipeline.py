"""Chunked, rate-limited fan-out of message generation requests.

Diffs are split into small contiguous chunks. All requests of a chunk run
concurrently; chunks run one after another with a short jittered pause in
between. A chunk with any failed request is discarded as a whole and retried
from its first record after a long cooldown, so the output always lines up
index-for-index with the input.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from rich.console import Console
from rich.markup import escape

from .git import DiffRecord
from .providers import ProviderAuthError, ProviderConfigError, RateLimitError

BatchSizeStrategy = Callable[[int], int]
SleepFunc = Callable[[float], Awaitable[None]]

# Errors no amount of waiting will fix
FATAL_ERRORS: tuple[type[Exception], ...] = (ProviderAuthError, ProviderConfigError)


class MessageSource(Protocol):
    async def generate(self, diff: str) -> str: ...


@dataclass(frozen=True)
class ImprovedMessage:
    """A generated message for one commit."""

    id: str
    message: str


@dataclass(frozen=True)
class Chunk:
    """Contiguous slice of the input records."""

    start: int
    records: tuple[DiffRecord, ...]

    @property
    def end(self) -> int:
        return self.start + len(self.records)


@dataclass(frozen=True)
class RetryPolicy:
    """Limits for retrying failed chunks.

    Attributes:
        max_attempts: Attempts allowed per chunk (None for unlimited)
        max_failures: Failed attempts allowed across the whole run before
            giving up (None for unlimited)
    """

    max_attempts: int | None = None
    max_failures: int | None = None

    def exhausted(self, attempts: int, failures: int) -> bool:
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        return self.max_failures is not None and failures >= self.max_failures


class RetryExhaustedError(Exception):
    """A chunk kept failing past the retry policy."""

    def __init__(self, chunk: Chunk, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Giving up on commits {chunk.start}-{chunk.end - 1} after "
            f"{attempts} attempt(s): {last_error}"
        )
        self.chunk = chunk
        self.attempts = attempts
        self.last_error = last_error


def parity_batch_size(total: int) -> int:
    """Chunks of 4 for an even number of commits, 3 for an odd one."""
    return 4 if total % 2 == 0 else 3


def partition(records: Sequence[DiffRecord], size: int) -> list[Chunk]:
    """Split records into contiguous chunks of at most ``size``."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [
        Chunk(start=start, records=tuple(records[start : start + size]))
        for start in range(0, len(records), size)
    ]


def inter_chunk_delay(rng: random.Random) -> int:
    """Pause in milliseconds between two successful chunks."""
    return 1000 * rng.randint(1, 5) + 100 * rng.randint(1, 5)


def backoff_delay(rng: random.Random) -> int:
    """Cooldown in milliseconds before retrying a failed chunk."""
    return 60_000 + 1000 * rng.randint(1, 5)


class ChunkedRequestPipeline:
    """Generates one improved message per diff, in input order."""

    def __init__(
        self,
        generator: MessageSource,
        batch_size: BatchSizeStrategy = parity_batch_size,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
        console: Console | None = None,
    ) -> None:
        self.generator = generator
        self.batch_size = batch_size
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.console = console or Console()

    async def improve(self, records: Sequence[DiffRecord]) -> list[ImprovedMessage]:
        """Generate messages for all records.

        Args:
            records: Diffs in commit order (oldest first)

        Returns:
            One ImprovedMessage per record, same order

        Raises:
            RetryExhaustedError: If the retry policy gives up on a chunk
            ProviderAuthError: If the backend rejects the credentials
        """
        if not records:
            return []

        size = self.batch_size(len(records))
        chunks = partition(records, size)
        self.console.print(f"[blue]Improving commit messages in chunks of {size}.[/]")

        improved: list[ImprovedMessage] = []
        failures = 0

        for position, chunk in enumerate(chunks):
            attempts = 0
            while True:
                attempts += 1
                try:
                    messages = await self._run_chunk(chunk)
                    break
                except FATAL_ERRORS:
                    raise
                except Exception as e:
                    failures += 1
                    kind = "rate limited" if isinstance(e, RateLimitError) else "failed"
                    self.console.print(
                        f"[yellow]Commits {chunk.start}-{chunk.end - 1} {kind}: {escape(str(e))}[/]"
                    )
                    if self.retry_policy.exhausted(attempts, failures):
                        raise RetryExhaustedError(chunk, attempts, e) from e

                    sleep_for = backoff_delay(self._rng)
                    self.console.print(f"[yellow]Retrying after sleeping for {sleep_for}[/]")
                    await self._sleep(sleep_for / 1000)

            improved.extend(messages)

            if position < len(chunks) - 1:
                sleep_for = inter_chunk_delay(self._rng)
                self.console.print(
                    f"[green]Improved {len(messages)} messages. Sleeping for {sleep_for}[/]"
                )
                await self._sleep(sleep_for / 1000)
            else:
                self.console.print(f"[green]Improved {len(messages)} messages.[/]")

        return improved

    async def _run_chunk(self, chunk: Chunk) -> list[ImprovedMessage]:
        """Run every request of a chunk concurrently and wait for all of them."""
        outcomes = await asyncio.gather(
            *(self.generator.generate(record.diff) for record in chunk.records),
            return_exceptions=True,
        )

        errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        for error in errors:
            if isinstance(error, FATAL_ERRORS) or not isinstance(error, Exception):
                raise error
        if errors:
            raise errors[0]

        return [
            ImprovedMessage(id=record.id, message=message)
            for record, message in zip(chunk.records, outcomes)
        ]
