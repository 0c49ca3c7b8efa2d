"""Shared pytest fixtures for git_provenance tests."""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import datetime, timezone

import pytest

from git_provenance.core.config import Settings
from git_provenance.parsers.models import Commit

SHA_A = "a" * 40
SHA_B = "b" * 40
SHA_C = "c" * 40

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not on PATH")


@pytest.fixture
def settings():
    return Settings(timeout=10.0, max_commits=500, default_limit=50)


@pytest.fixture
def make_commit():
    """Factory for Commit records with sensible defaults."""

    def _make(**overrides) -> Commit:
        message = overrides.pop("message", "fix: correct buffer size check")
        sha = overrides.pop("sha", SHA_A)
        subject, _, rest = message.partition("\n")
        defaults = {
            "sha": sha,
            "short_sha": sha[:7],
            "message": message,
            "subject": subject.strip(),
            "body": rest.strip() or None,
            "author_name": "Alice",
            "author_email": "alice@example.com",
            "author_date": datetime(2026, 1, 15, tzinfo=timezone.utc),
            "committer_name": "Alice",
            "committer_email": "alice@example.com",
            "commit_date": datetime(2026, 1, 15, tzinfo=timezone.utc),
            "parents": (),
            "tree_sha": None,
        }
        defaults.update(overrides)
        return Commit(**defaults)

    return _make


class GitRepo:
    """Throwaway repository driven through the real git binary."""

    def __init__(self, root):
        self.root = root
        root.mkdir(parents=True, exist_ok=True)
        self.env = {
            **os.environ,
            "GIT_AUTHOR_NAME": "Alice",
            "GIT_AUTHOR_EMAIL": "alice@example.com",
            "GIT_COMMITTER_NAME": "Alice",
            "GIT_COMMITTER_EMAIL": "alice@example.com",
            "GIT_CONFIG_NOSYSTEM": "1",
            "HOME": str(root),
        }
        self.git("init", "-q")
        self.git("config", "commit.gpgsign", "false")
        self.git("config", "tag.gpgsign", "false")

    @property
    def path(self) -> str:
        return str(self.root)

    def git(self, *args: str, env: dict | None = None) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            env={**self.env, **(env or {})},
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def write(self, rel_path: str, content: str) -> None:
        target = self.root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def commit(self, message: str, *, author: str | None = None, email: str | None = None) -> str:
        env = {}
        if author:
            env["GIT_AUTHOR_NAME"] = author
        if email:
            env["GIT_AUTHOR_EMAIL"] = email
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git binary not on PATH")
    return GitRepo(tmp_path / "repo")
