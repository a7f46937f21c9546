"""Non-interactive history rewrite applying one new message per commit.

The rewrite drives ``git rebase --exec`` with a small step script. Before the
rebase starts, every new message is written to ``commit-<n>.txt`` in the
worktree root together with a ``count.txt`` cursor. Each time the rebase
replays a commit the script amends it with the file the cursor points at and
advances the cursor, so the n-th replayed commit receives the n-th message.
"""

from __future__ import annotations

import re
import stat
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .git import CommitRef, GitError, GitRepo
from .pipeline import ImprovedMessage

COUNTER_FILE = "count.txt"
SCRIPT_FILE = "rebase-exec.sh"
MESSAGE_FILE_RE = re.compile(r"^commit-\d+\.txt$")

STEP_SCRIPT = """#!/bin/bash
set -e
count=$(cat count.txt)
git commit --amend -F commit-$count.txt
echo $(( count + 1 )) > count.txt
"""

# Marks every todo line as reword instead of pick
SEQUENCE_EDITOR = 'sed -i -e "s/^pick/reword/g"'

STALE_POLICIES = ("refuse", "abort")


class RewriteError(GitError):
    """History rewrite could not be completed."""

    pass


class StaleRewriteError(RewriteError):
    """A previous rewrite left a rebase or plan files behind."""

    pass


@dataclass(frozen=True)
class CommitterIdentity:
    """Name and email stamped on the rewritten commits."""

    name: str
    email: str

    @classmethod
    def for_actor(cls, actor: str, host: str = "github.com") -> CommitterIdentity:
        return cls(name=actor, email=f"{actor}@users.noreply.{host}")

    def env(self) -> dict[str, str]:
        return {"GIT_COMMITTER_NAME": self.name, "GIT_COMMITTER_EMAIL": self.email}


def message_file_name(index: int) -> str:
    return f"commit-{index}.txt"


def messages_changed(plan: Sequence[ImprovedMessage], originals: Sequence[CommitRef]) -> bool:
    """True when at least one message differs from the original at its index."""
    return any(item.message != original.original_message for item, original in zip(plan, originals))


class RewritePlan:
    """The files the step script reads during the rebase."""

    def __init__(self, directory: Path, messages: Sequence[str]) -> None:
        self.directory = directory
        self.messages = list(messages)

    @property
    def message_paths(self) -> list[Path]:
        return [self.directory / message_file_name(i) for i in range(len(self.messages))]

    @property
    def counter_path(self) -> Path:
        return self.directory / COUNTER_FILE

    @property
    def script_path(self) -> Path:
        return self.directory / SCRIPT_FILE

    @property
    def artifacts(self) -> list[Path]:
        return [*self.message_paths, self.counter_path, self.script_path]

    def write(self) -> None:
        for path, message in zip(self.message_paths, self.messages):
            path.write_text(message, encoding="utf-8")
        self.counter_path.write_text("0", encoding="utf-8")
        self.script_path.write_text(STEP_SCRIPT, encoding="utf-8")
        self.script_path.chmod(self.script_path.stat().st_mode | stat.S_IEXEC)

    def remove(self) -> None:
        for path in self.artifacts:
            path.unlink(missing_ok=True)


class HistoryRewriter:
    """Rewrites commit messages on the current branch and force pushes."""

    def __init__(
        self,
        repo: GitRepo,
        identity: CommitterIdentity | None = None,
        console: Console | None = None,
        dry_run: bool = False,
        push: bool = True,
        remote: str | None = None,
        remote_branch: str | None = None,
        backup: bool = False,
    ) -> None:
        self.repo = repo
        self.identity = identity
        self.console = console or Console()
        self.dry_run = dry_run
        self.push = push
        self.remote = remote
        self.remote_branch = remote_branch
        self.backup = backup

    def _leftover_files(self) -> list[Path]:
        """Untracked plan files in the worktree root."""
        toplevel = self.repo.get_toplevel()
        candidates = [
            path
            for path in toplevel.iterdir()
            if path.name in (COUNTER_FILE, SCRIPT_FILE) or MESSAGE_FILE_RE.match(path.name)
        ]
        if not candidates:
            return []
        tracked = self.repo.tracked_files(*(path.name for path in candidates))
        return sorted(path for path in candidates if path.name not in tracked)

    def check_stale_state(self) -> list[str]:
        """Describe anything an interrupted rewrite left behind."""
        problems = []
        if self.repo.rebase_in_progress():
            problems.append("a rebase is in progress")
        leftovers = self._leftover_files()
        if any(path.name in (COUNTER_FILE, SCRIPT_FILE) for path in leftovers):
            problems.append(
                "rewrite files left behind: " + ", ".join(path.name for path in leftovers)
            )
        return problems

    def recover(self, policy: str = "refuse") -> None:
        """Deal with state left by an interrupted rewrite.

        Args:
            policy: "refuse" raises, "abort" aborts the rebase and deletes
                leftover plan files

        Raises:
            StaleRewriteError: If stale state exists and policy is "refuse"
            ValueError: If the policy is unknown
        """
        if policy not in STALE_POLICIES:
            raise ValueError(f"Unknown stale state policy: {policy}")

        problems = self.check_stale_state()
        if not problems:
            return

        if policy == "refuse":
            raise StaleRewriteError(
                "Previous rewrite did not finish ("
                + "; ".join(problems)
                + "). Resolve it with `git rebase --continue` or `git rebase --abort`, "
                "remove the leftover files, or rerun with --on-stale abort."
            )

        self.console.print(f"[yellow]⚠️  Cleaning up interrupted rewrite: {'; '.join(problems)}[/]")
        if self.repo.rebase_in_progress():
            self.repo.abort_rebase()
        for path in self._leftover_files():
            path.unlink(missing_ok=True)

    def _resolve_identity(self) -> CommitterIdentity:
        """The explicit committer, else git config user.name and user.email."""
        if self.identity is None:
            name = self.repo.get_config("user.name")
            email = self.repo.get_config("user.email")
            if not name or not email:
                raise RewriteError(
                    "Committer identity unknown. Pass --actor or set user.name and user.email"
                )
            self.identity = CommitterIdentity(name=name, email=email)
        return self.identity

    def _check_anchor(self, anchor_id: str) -> bool:
        """Whether the oldest rewritten commit has a parent to rebase onto.

        Raises:
            RewriteError: If the parent exists but is not available locally,
                as at the boundary of a shallow clone
        """
        parents = self.repo.parent_ids(anchor_id)
        if not parents:
            return False
        missing = [parent for parent in parents if not self.repo.has_object(parent)]
        if missing:
            shallow = " (shallow clone, fetch with full depth)" if self.repo.is_shallow() else ""
            raise RewriteError(
                f"Parent {missing[0][:8]} of {anchor_id[:8]} is not available locally{shallow}. "
                "Rewriting without it would drop the earlier history."
            )
        return True

    def _check_plan(
        self,
        plan: Sequence[ImprovedMessage],
        originals: Sequence[CommitRef],
        anchor_id: str,
        has_parent: bool,
    ) -> None:
        if len(plan) != len(originals):
            raise RewriteError(
                f"Got {len(plan)} messages for {len(originals)} commits"
            )
        for index, (item, original) in enumerate(zip(plan, originals)):
            if item.id != original.id:
                raise RewriteError(
                    f"Message {index} belongs to {item.id[:8]}, expected {original.id[:8]}"
                )

        revision_range = f"{anchor_id}^..HEAD" if has_parent else "HEAD"
        merges = self.repo.merge_commits(revision_range)
        if merges:
            raise RewriteError(
                f"Range from {anchor_id[:8]} to HEAD contains {len(merges)} merge commit(s) "
                f"({', '.join(m[:8] for m in merges)}); a rebase would flatten them"
            )

        replayed = self.repo.replay_order(revision_range)
        if len(replayed) != len(plan):
            raise RewriteError(
                f"Rebase would replay {len(replayed)} commit(s) from {anchor_id[:8]} to HEAD "
                f"but {len(plan)} message(s) were generated. "
                "HEAD must be the newest improved commit."
            )
        for index, (item, commit_id) in enumerate(zip(plan, replayed)):
            if item.id != commit_id:
                raise RewriteError(
                    f"Rebase replays {commit_id[:8]} as commit {index}, "
                    f"but the message was generated for {item.id[:8]}"
                )

        if self.repo.has_uncommitted_changes():
            raise RewriteError("Working tree has uncommitted changes, commit or stash them first")

    def rewrite(
        self,
        plan: Sequence[ImprovedMessage],
        originals: Sequence[CommitRef],
        anchor_id: str | None = None,
    ) -> bool:
        """Apply the improved messages to the branch history.

        Args:
            plan: Improved messages, oldest commit first
            originals: The commits the messages belong to, same order
            anchor_id: Oldest replaced commit (defaults to the first original)

        Returns:
            True if history was rewritten, False if there was nothing to do

        Raises:
            RewriteError: If the plan does not match the branch or the rebase fails
        """
        if not plan:
            return False

        if not messages_changed(plan, originals):
            self.console.print("[green]No changes in commit messages detected, skipping rebase[/]")
            return False

        anchor_id = anchor_id or originals[0].id
        has_parent = self._check_anchor(anchor_id)
        self._check_plan(plan, originals, anchor_id, has_parent)

        if self.dry_run:
            self.console.print("\n[cyan]📋 Planned messages (dry run):[/]")
            for item, original in zip(plan, originals):
                marker = "✨" if item.message != original.original_message else "="
                self.console.print(f"  {marker} {item.id[:8]}: {escape(item.message)}")
            return False

        identity = self._resolve_identity()

        backup_branch = None
        if self.backup:
            backup_branch = self.repo.create_backup_branch()
            self.console.print(f"[green]✅ Created backup branch: {backup_branch}[/]")

        rewrite_plan = RewritePlan(self.repo.get_toplevel(), [item.message for item in plan])
        rewrite_plan.write()

        base = [f"{anchor_id}^"] if has_parent else ["--root"]
        env = {
            "GIT_SEQUENCE_EDITOR": SEQUENCE_EDITOR,
            "GIT_EDITOR": ":",
            **identity.env(),
        }
        try:
            self.repo._run(
                "rebase", "--no-autosquash", *base, "--exec", f"./{SCRIPT_FILE}", env=env
            )
        except GitError as e:
            hint = f"\nRestore with: git reset --hard {backup_branch}" if backup_branch else ""
            raise RewriteError(
                "Rebase failed; the repository is left mid-rebase with the rewrite files "
                f"in place.{hint}\n{e}"
            ) from e

        rewrite_plan.remove()
        self.console.print(f"[green]✅ Rewrote {len(plan)} commit message(s)[/]")

        if self.push:
            self.console.print("[blue]Force pushing non-interactively rebased commits into remote.[/]")
            output = self.repo.force_push(self.remote, self.remote_branch)
            if output:
                self.console.print(f"[dim]{escape(output)}[/]")

        return True
