"""Main GitCommitReworder class tying sources, generation and rewriting together."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import RewordOptions
from .diffs import DiffFetcher, fetch_all
from .generator import MessageGenerator
from .git import CommitRef, DiffRecord, GitRepo
from .history import CommitterIdentity, HistoryRewriter
from .pipeline import ChunkedRequestPipeline, ImprovedMessage, RetryPolicy, SleepFunc
from .providers import create_provider
from .sources import CommitSource


class GitCommitReworder:
    """AI-powered rewriter for the messages of already pushed commits."""

    def __init__(
        self,
        options: RewordOptions | None = None,
        repo: GitRepo | None = None,
        identity: CommitterIdentity | None = None,
        generator: MessageGenerator | None = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize the reworder.

        Args:
            options: Run options
            repo: Repository to rewrite (defaults to cwd)
            identity: Committer for rewritten commits (defaults to git config,
                read only when history is actually rewritten)
            generator: Message generator (built from options when omitted)
            sleep: Coroutine used for pipeline pauses
            rng: Random source for pause jitter
            console: Rich console for output
        """
        self.options = options or RewordOptions()
        self.console = console or Console(quiet=self.options.quiet)
        self.repo = repo or GitRepo()
        self._identity = identity
        self._generator = generator
        self._sleep = sleep
        self._rng = rng

        # Statistics
        self._improved_count = 0

    def _get_generator(self) -> MessageGenerator:
        """Lazily create and return the message generator."""
        if self._generator is None:
            provider = create_provider(
                provider=self.options.provider,
                api_key=self.options.api_key,
                model=self.options.model,
                base_url=self.options.ollama_url,
                config=self.options.provider_config,
            )
            self._generator = MessageGenerator(provider, self.options.generation)
        return self._generator

    def _history_rewriter(self) -> HistoryRewriter:
        return HistoryRewriter(
            self.repo,
            self._identity,
            console=self.console,
            dry_run=self.options.dry_run,
            push=self.options.push,
            remote=self.options.remote,
            remote_branch=self.options.remote_branch,
            backup=self.options.backup,
        )

    async def _fetch_diffs(self, fetcher: DiffFetcher, commits: Sequence[CommitRef]) -> list[DiffRecord]:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            disable=self.options.quiet,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching {len(commits)} commit diffs...", total=None)
            return await fetch_all(fetcher, [commit.id for commit in commits])

    async def improve(self, fetcher: DiffFetcher, commits: Sequence[CommitRef]) -> list[ImprovedMessage]:
        """Fetch diffs and generate an improved message per commit."""
        diffs = await self._fetch_diffs(fetcher, commits)

        pipeline = ChunkedRequestPipeline(
            self._get_generator(),
            retry_policy=RetryPolicy(
                max_attempts=self.options.max_attempts,
                max_failures=self.options.max_failures,
            ),
            sleep=self._sleep,
            rng=self._rng,
            console=self.console,
        )
        improved = await pipeline.improve(diffs)

        self._improved_count = sum(
            1
            for item, commit in zip(improved, commits)
            if item.message != commit.original_message
        )
        return improved

    async def run(self, source: CommitSource, fetcher: DiffFetcher) -> bool:
        """Improve the messages of the source's commits and rewrite history.

        Returns:
            True if history was rewritten

        Raises:
            StaleRewriteError: If an earlier rewrite was interrupted and the
                stale policy is "refuse"
            RewriteError: If the rebase fails
        """
        self.repo.check_repository()
        rewriter = self._history_rewriter()
        rewriter.recover(self.options.on_stale)

        commits = source.list()
        if not commits:
            self.console.print("[yellow]No new commits found.[/]")
            return False

        self.console.print(f"[blue]Found {len(commits)} commits to improve.[/]")

        try:
            improved = await self.improve(fetcher, commits)
        finally:
            if self._generator is not None:
                await self._generator.aclose()

        self.console.print("\n[cyan]📊 Summary:[/]")
        self.console.print(f"[blue]  • Total commits analyzed: {len(commits)}[/]")
        self.console.print(f"[green]  • Commits improved: {self._improved_count}[/]")

        if self.options.verbose:
            for item, commit in zip(improved, commits):
                self.console.print(
                    f'[dim]{item.id[:8]}: "{escape(commit.original_message)}" → "{escape(item.message)}"[/]'
                )

        rewritten = await asyncio.to_thread(rewriter.rewrite, improved, commits)
        if rewritten:
            self.console.print("\n[bold green]✅ Done 🧙[/]")
        return rewritten


__all__ = ["GitCommitReworder"]
