"""CLI interface for git-reword."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from typing import Any

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .action import ActionContext
from .config import GenerationConfig, RewordOptions
from .diffs import GitHubDiffFetcher, LocalDiffFetcher
from .git import GitRepo
from .history import STALE_POLICIES, CommitterIdentity
from .providers import PROVIDERS, ProviderConfig
from .rewriter import GitCommitReworder
from .sources import LocalRangeSource, PushEventSource

console = Console()


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every rewrite command."""
    options = [
        click.option(
            "--provider",
            type=click.Choice(PROVIDERS),
            default="openai",
            show_default=True,
            help="AI provider to use",
        ),
        click.option(
            "-k",
            "--api-key",
            help="API key (defaults to OPENAI_API_KEY or DEEPSEEK_API_KEY env var)",
        ),
        click.option("-m", "--model", help="AI model to use (default varies by provider)"),
        click.option(
            "--ollama-url",
            default="http://localhost:11434",
            show_default=True,
            help="Ollama server URL",
        ),
        click.option(
            "-l",
            "--language",
            help="Language for commit messages (env GIT_REWORD_LANGUAGE, default: en)",
        ),
        click.option(
            "--emoji/--no-emoji",
            default=None,
            help="Preface messages with GitMoji (env GIT_REWORD_EMOJI)",
        ),
        click.option(
            "--description/--no-description",
            default=None,
            help="Add a short WHY description (env GIT_REWORD_DESCRIPTION)",
        ),
        click.option(
            "--timeout",
            type=click.FloatRange(min=0, min_open=True),
            help="Seconds to wait for each AI request (default varies by provider)",
        ),
        click.option(
            "--max-attempts",
            type=click.IntRange(min=1),
            help="Give up on a chunk after N attempts (default: retry forever)",
        ),
        click.option(
            "--max-failures",
            type=click.IntRange(min=1),
            help="Give up after N failed chunk attempts in total (default: retry forever)",
        ),
        click.option(
            "--on-stale",
            type=click.Choice(STALE_POLICIES),
            default="refuse",
            show_default=True,
            help="What to do when an earlier rewrite was interrupted",
        ),
        click.option(
            "-v",
            "--verbose",
            is_flag=True,
            help="Show every generated message and full tracebacks",
        ),
        click.option(
            "-q",
            "--quiet",
            is_flag=True,
            help="Suppress all informational output",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_options(
    provider: str,
    api_key: str | None,
    model: str | None,
    ollama_url: str,
    language: str | None,
    emoji: bool | None,
    description: bool | None,
    timeout: float | None,
    max_attempts: int | None,
    max_failures: int | None,
    on_stale: str,
    verbose: bool,
    quiet: bool,
    **extra: Any,
) -> RewordOptions:
    """Turn parsed CLI values into RewordOptions."""
    # Flags win over GIT_REWORD_* variables
    defaults = GenerationConfig.from_env()
    generation = GenerationConfig(
        language=language or defaults.language,
        emoji=defaults.emoji if emoji is None else emoji,
        description=defaults.description if description is None else description,
    )
    return RewordOptions(
        provider=provider,
        api_key=api_key,
        model=model,
        ollama_url=ollama_url,
        provider_config=ProviderConfig(timeout=timeout) if timeout else None,
        generation=generation,
        max_attempts=max_attempts,
        max_failures=max_failures,
        on_stale=on_stale,
        verbose=verbose,
        quiet=quiet,
        **extra,
    )


def fail(error: Exception, verbose: bool) -> None:
    """Report an error and exit with status 1."""
    if verbose:
        console.print_exception()
    else:
        console.print(f"\n[red]❌ Error: {escape(str(error))}[/]")
    sys.exit(1)


@click.group()
@click.version_option(__version__)
def main() -> None:
    """Improve commit messages with AI and rewrite history non-interactively.

    \b
    Examples:
      # Preview new messages for the last 5 commits
      git-reword local --max-commits 5 --dry-run

      # Rewrite everything after origin/main and force push
      git-reword local --base origin/main

      # Inside a GitHub Actions push workflow
      git-reword action
    """


@main.command()
@click.option("--base", help="Rewrite commits after this revision (exclusive)")
@click.option("--max-commits", type=click.IntRange(min=1), help="Rewrite only the last N commits")
@click.option(
    "-d",
    "--dry-run",
    is_flag=True,
    help="Show the new messages without modifying the repository",
)
@click.option("--push/--no-push", default=False, show_default=True, help="Force push after rewriting")
@click.option("--remote", help="Remote to force push to (default: upstream of the branch)")
@click.option("--remote-branch", help="Branch on --remote to overwrite (default: same name)")
@click.option("--backup/--no-backup", default=True, show_default=True, help="Create a backup branch first")
@click.option("--actor", help="Committer name for rewritten commits (default: git config user.name)")
@click.option("--email", help="Committer email (default: <actor>@users.noreply.github.com)")
@common_options
def local(
    base: str | None,
    max_commits: int | None,
    dry_run: bool,
    push: bool,
    remote: str | None,
    remote_branch: str | None,
    backup: bool,
    actor: str | None,
    email: str | None,
    **kwargs: Any,
) -> None:
    """Rewrite a range of commits of the local repository."""
    try:
        options = build_options(
            dry_run=dry_run,
            push=push,
            remote=remote,
            remote_branch=remote_branch,
            backup=backup,
            **kwargs,
        )
        repo = GitRepo()
        identity = None
        if actor:
            identity = (
                CommitterIdentity(name=actor, email=email)
                if email
                else CommitterIdentity.for_actor(actor)
            )

        reworder = GitCommitReworder(options, repo=repo, identity=identity)
        source = LocalRangeSource(repo, base=base, max_commits=max_commits)
        asyncio.run(reworder.run(source, LocalDiffFetcher(repo)))
    except Exception as e:
        fail(e, kwargs["verbose"])


@main.command()
@common_options
def action(**kwargs: Any) -> None:
    """Rewrite the commits of a GitHub Actions push event."""
    try:
        context = ActionContext.from_env()
        context.require_push()
        token = context.require_token()

        options = build_options(push=True, **kwargs)
        if not options.quiet:
            console.print("[bold cyan]🚀 git-reword: improving lame commit messages[/]")
            console.print("[blue]Processing commits in a push event[/]")

        repo = GitRepo()
        context.configure_git(repo)
        identity = CommitterIdentity.for_actor(context.actor, context.host)

        reworder = GitCommitReworder(options, repo=repo, identity=identity)
        fetcher = GitHubDiffFetcher(
            context.owner, context.repo, token=token, api_url=context.api_url
        )

        async def run() -> bool:
            try:
                return await reworder.run(PushEventSource(context.payload), fetcher)
            finally:
                await fetcher.aclose()

        asyncio.run(run())
    except Exception as e:
        fail(e, kwargs["verbose"])


if __name__ == "__main__":
    main()
