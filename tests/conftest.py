import subprocess
from pathlib import Path

import pytest


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content, encoding="utf-8")
    git(repo, "add", name)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path_factory, monkeypatch):
    """Keep the developer's git configuration out of the tests."""
    global_config = tmp_path_factory.mktemp("gitconfig") / "config"
    global_config.write_text("", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for name in ("GIT_EDITOR", "GIT_SEQUENCE_EDITOR", "GIT_DIR", "GIT_WORK_TREE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    remote = tmp_path / "remote.git"
    git(tmp_path, "-c", "init.defaultBranch=main", "init", "--bare", str(remote))
    return remote


@pytest.fixture
def repo_path(tmp_path: Path, remote_repo: Path) -> Path:
    """A repository with one root commit, tracking a bare remote."""
    work = tmp_path / "work"
    git(tmp_path, "-c", "init.defaultBranch=main", "init", str(work))
    git(work, "config", "user.name", "Original Author")
    git(work, "config", "user.email", "author@example.com")
    git(work, "config", "commit.gpgsign", "false")
    commit_file(work, "README.md", "# demo\n", "initial commit")
    git(work, "remote", "add", "origin", str(remote_repo))
    git(work, "push", "-u", "origin", "main")
    return work
