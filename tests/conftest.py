from __future__ import annotations

import datetime as dt
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from postdates.cache import ProvenanceCache
from postdates.history import Revision, sort_revisions, without_merges

NOW = dt.datetime(2024, 3, 1, 9, 30, tzinfo=dt.timezone.utc)


def ts(text: str) -> dt.datetime:
    return dt.datetime.fromisoformat(text.replace("Z", "+00:00"))


def rev(commit_id: str, when: str, merge: bool = False, message: str = "") -> Revision:
    return Revision(commit_id=commit_id, timestamp=ts(when), is_merge=merge, message=message)


class FakeHistory:
    """In-memory history: revisions per path plus the branch log."""

    def __init__(self, complete: bool = True) -> None:
        self.complete = complete
        self.paths: dict[str, list[Revision]] = {}
        self.branch: list[Revision] = []
        self.tracked: set[str] = set()
        self.calls: list[str] = []

    def add(self, path: str, *revisions: Revision) -> "FakeHistory":
        self.paths.setdefault(path, []).extend(revisions)
        self.tracked.add(path)
        for revision in revisions:
            if revision not in self.branch:
                self.branch.append(revision)
        return self

    def revisions_for(self, path: str) -> list[Revision]:
        self.calls.append(path)
        return sort_revisions(without_merges(self.paths.get(path, [])))

    def branch_revisions(self) -> list[Revision]:
        return sort_revisions(without_merges(self.branch))

    def is_history_complete(self) -> bool:
        return self.complete

    def is_tracked(self, path: str) -> bool:
        return path in self.tracked


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "caches" / "posts.json"


@pytest.fixture
def cache(cache_path):
    return ProvenanceCache(cache_path)


def clock():
    return NOW


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class GitRepo:
    """A throwaway git repository with deterministic commit dates."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.env = dict(os.environ)
        self.env.update(
            {
                "GIT_AUTHOR_NAME": "Test",
                "GIT_AUTHOR_EMAIL": "test@example.com",
                "GIT_COMMITTER_NAME": "Test",
                "GIT_COMMITTER_EMAIL": "test@example.com",
                "GIT_CONFIG_GLOBAL": os.devnull,
                "GIT_CONFIG_NOSYSTEM": "1",
            }
        )
        self.git("init", "-q", "-b", "main")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args], cwd=self.root, env=self.env, capture_output=True, text=True, check=True
        )
        return result.stdout

    def write(self, relpath: str, text: str) -> None:
        path = self.root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def commit(self, message: str, when: str, *paths: str) -> str:
        self.git("add", *(paths or ("-A",)))
        env_date = {"GIT_AUTHOR_DATE": when, "GIT_COMMITTER_DATE": when}
        self.env.update(env_date)
        try:
            self.git("commit", "-q", "-m", message)
        finally:
            for key in env_date:
                self.env.pop(key, None)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    return GitRepo(root)
