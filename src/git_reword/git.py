"""Git operations wrapper using subprocess."""

from __future__ import annotations

import asyncio
import os
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommitRef:
    """A commit whose message is a candidate for improvement."""

    id: str
    original_message: str


@dataclass(frozen=True)
class DiffRecord:
    """Patch text of a single commit against its parent."""

    id: str
    diff: str


class GitError(Exception):
    """Error during git operations."""

    pass


class GitRepo:
    """Wrapper for git operations using subprocess."""

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize git repository wrapper.

        Args:
            path: Path to the repository (defaults to current directory)
        """
        self.path = Path(path) if path else Path.cwd()

    def _run(
        self,
        *args: str,
        check: bool = True,
        capture_output: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command.

        Args:
            *args: Git command arguments
            check: Raise exception on non-zero exit
            capture_output: Capture stdout/stderr
            env: Extra environment variables layered over os.environ

        Returns:
            CompletedProcess result

        Raises:
            GitError: If command fails and check is True
        """
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                check=check,
                capture_output=capture_output,
                text=True,
                encoding="utf-8",
                errors="replace",
                env={**os.environ, **env} if env else None,
            )
            return result
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"Command failed: {' '.join(cmd)}\nExit code: {e.returncode}\nStderr: {e.stderr}"
            ) from e

    async def _run_async(self, *args: str) -> str:
        """Run a git command without blocking the event loop.

        Returns:
            Decoded stdout

        Raises:
            GitError: If the command exits non-zero
        """
        cmd = ["git", *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=self.path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise GitError(
                f"Command failed: {' '.join(cmd)}\nExit code: {process.returncode}\n"
                f"Stderr: {stderr.decode('utf-8', errors='replace')}"
            )
        return stdout.decode("utf-8", errors="replace")

    def is_repository(self) -> bool:
        """Check if this is a valid git repository."""
        try:
            self._run("rev-parse", "--git-dir")
            return True
        except GitError:
            return False

    def check_repository(self) -> None:
        """Check if this is a valid git repository.

        Raises:
            GitError: If not a git repository
        """
        if not self.is_repository():
            raise GitError("Not a git repository!")

    def get_toplevel(self) -> Path:
        """Get the root of the working tree."""
        result = self._run("rev-parse", "--show-toplevel")
        return Path(result.stdout.strip())

    def get_git_dir(self) -> Path:
        """Get the absolute path of the .git directory."""
        result = self._run("rev-parse", "--absolute-git-dir")
        return Path(result.stdout.strip())

    def has_uncommitted_changes(self) -> bool:
        """Check if there are uncommitted changes to tracked files."""
        result = self._run("status", "--porcelain", "--untracked-files=no")
        return bool(result.stdout.strip())

    def get_current_branch(self) -> str:
        """Get the current branch name."""
        result = self._run("rev-parse", "--abbrev-ref", "HEAD")
        return result.stdout.strip()

    def parent_ids(self, commit_hash: str) -> list[str]:
        """Parents recorded in the commit object itself.

        Unlike ``rev-parse <commit>^`` this also works at the boundary of a
        shallow clone, where the parent objects are missing.
        """
        result = self._run("cat-file", "-p", commit_hash)
        parents = []
        for line in result.stdout.split("\n"):
            if not line:
                break
            if line.startswith("parent "):
                parents.append(line.split(" ", 1)[1].strip())
        return parents

    def has_object(self, object_id: str) -> bool:
        result = self._run("cat-file", "-e", object_id, check=False)
        return result.returncode == 0

    def is_shallow(self) -> bool:
        result = self._run("rev-parse", "--is-shallow-repository")
        return result.stdout.strip() == "true"

    def get_commits(self, base: str | None = None, max_commits: int | None = None) -> list[str]:
        """Get non-merge commit hashes reachable from HEAD.

        Args:
            base: Exclusive lower bound of the range (``base..HEAD``)
            max_commits: Maximum number of commits to return (most recent ones)

        Returns:
            List of commit hashes (oldest first for processing)
        """
        args = ["rev-list", "--no-merges", "--topo-order", "--reverse"]
        if max_commits and max_commits > 0:
            args += ["-n", str(max_commits)]
        args.append(f"{base}..HEAD" if base else "HEAD")

        result = self._run(*args)
        commits = [line for line in result.stdout.strip().split("\n") if line]
        return commits

    def replay_order(self, revision_range: str) -> list[str]:
        """Non-merge commits of a range in the order a rebase replays them."""
        result = self._run("rev-list", "--reverse", "--topo-order", "--no-merges", revision_range)
        return [line for line in result.stdout.split("\n") if line]

    def merge_commits(self, revision_range: str) -> list[str]:
        result = self._run("rev-list", "--min-parents=2", revision_range)
        return [line for line in result.stdout.split("\n") if line]

    def get_commit_full_message(self, commit_hash: str) -> str:
        """Get the full commit message including body."""
        result = self._run("log", "-1", "--format=%B", commit_hash)
        return result.stdout.rstrip("\n")

    async def show_patch(self, commit_hash: str) -> str:
        """Get the patch of a commit against its parent."""
        return await self._run_async("show", "--format=", "-p", commit_hash)

    def tracked_files(self, *paths: str) -> set[str]:
        """Return the subset of paths (relative to the worktree root) git tracks."""
        result = self._run("ls-files", "--full-name", "--", *(f":/{path}" for path in paths))
        return {line for line in result.stdout.split("\n") if line}

    def get_config(self, key: str) -> str | None:
        """Read a git config value, None when unset."""
        result = self._run("config", "--get", key, check=False)
        value = result.stdout.strip()
        return value or None

    def set_config(self, key: str, value: str) -> None:
        """Set a repository-local git config value."""
        self._run("config", key, value)

    def rebase_in_progress(self) -> bool:
        """Check whether a rebase has been started and not finished."""
        git_dir = self.get_git_dir()
        return (git_dir / "rebase-merge").exists() or (git_dir / "rebase-apply").exists()

    def abort_rebase(self) -> None:
        """Abort an in-progress rebase."""
        self._run("rebase", "--abort")

    def create_backup_branch(self, base_name: str | None = None) -> str:
        """Create a backup branch of the current state.

        Args:
            base_name: Base name for the backup branch

        Returns:
            Name of the created backup branch
        """
        if base_name is None:
            base_name = self.get_current_branch()

        backup_name = f"backup-{base_name}-{int(time.time())}"
        self._run("branch", backup_name)
        return backup_name

    def force_push(self, remote: str | None = None, branch: str | None = None) -> str:
        """Force push the current branch.

        Args:
            remote: Remote name (uses the branch's upstream when omitted)
            branch: Remote branch to overwrite (requires remote)

        Returns:
            Combined push output
        """
        args = ["push", "--force"]
        if remote:
            args.append(remote)
            if branch:
                args.append(f"HEAD:{branch}")
        result = self._run(*args)
        return (result.stdout + result.stderr).strip()
