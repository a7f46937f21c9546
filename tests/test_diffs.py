import asyncio

import httpx
import pytest

from conftest import commit_file, git
from git_reword.diffs import GitHubDiffFetcher, LocalDiffFetcher, fetch_all
from git_reword.git import DiffRecord, GitError, GitRepo

PATCH = "diff --git a/a.py b/a.py\n+print('a')\n"


def fetch_with(fetcher, ids):
    async def run():
        try:
            return await fetch_all(fetcher, ids)
        finally:
            await fetcher.aclose()

    return asyncio.run(run())


def test_github_fetcher_requests_diff_media_type():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, text=f"{PATCH}# {request.url.path}")

    fetcher = GitHubDiffFetcher(
        "octo", "demo", token="ghs_token", transport=httpx.MockTransport(handler)
    )

    records = fetch_with(fetcher, ["aaa", "bbb"])

    assert [r.id for r in records] == ["aaa", "bbb"]
    assert records[1].diff.endswith("/repos/octo/demo/commits/bbb")
    assert seen[0].headers["accept"] == "application/vnd.github.v3.diff"
    assert seen[0].headers["authorization"] == "Bearer ghs_token"
    assert str(seen[0].url).startswith("https://api.github.com/repos/octo/demo/commits/")


def test_github_fetcher_batch_fails_as_a_whole():
    def handler(request):
        if request.url.path.endswith("/missing"):
            return httpx.Response(422, json={"message": "No commit found"})
        return httpx.Response(200, text=PATCH)

    fetcher = GitHubDiffFetcher("octo", "demo", transport=httpx.MockTransport(handler))

    with pytest.raises(httpx.HTTPStatusError):
        fetch_with(fetcher, ["aaa", "missing", "bbb"])


def test_github_fetcher_enterprise_api_url():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text="")

    fetcher = GitHubDiffFetcher(
        "octo",
        "demo",
        api_url="https://ghe.example.com/api/v3/",
        transport=httpx.MockTransport(handler),
    )

    assert fetch_with(fetcher, ["abc"]) == [DiffRecord(id="abc", diff="")]
    assert seen == ["https://ghe.example.com/api/v3/repos/octo/demo/commits/abc"]


def test_local_fetcher_reads_single_commit_patch(repo_path):
    first = commit_file(repo_path, "a.py", "print('a')\n", "add a")
    second = commit_file(repo_path, "b.py", "print('b')\n", "add b")
    fetcher = LocalDiffFetcher(GitRepo(repo_path))

    records = asyncio.run(fetch_all(fetcher, [first, second]))

    assert [r.id for r in records] == [first, second]
    assert "+print('a')" in records[0].diff
    assert "b.py" not in records[0].diff
    assert "diff --git a/b.py b/b.py" in records[1].diff


def test_local_fetcher_unknown_commit(repo_path):
    fetcher = LocalDiffFetcher(GitRepo(repo_path))
    head = git(repo_path, "rev-parse", "HEAD")

    with pytest.raises(GitError):
        asyncio.run(fetch_all(fetcher, [head, "0" * 40]))
