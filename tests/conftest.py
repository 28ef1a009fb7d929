"""Shared fixtures for semrel tests."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from semrel.vcs.git import Commit

PYPROJECT = """\
[project]
name = "test-project"
version = "1.0.0"
description = "A test project"

[tool.semrel]
release_branch = "main"
"""


def make_commit(sha: str, message: str) -> Commit:
    return Commit(
        sha=sha,
        message=message,
        author_name="Test",
        author_email="test@test.com",
        date=datetime(2024, 1, 1, 12, 0, 0),
    )


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


@pytest.fixture
def commit_factory() -> Callable[[str, str], Commit]:
    """Factory building in-memory commits: ``commit_factory(sha, message)``."""
    return make_commit


@pytest.fixture
def run_git() -> Callable[..., str]:
    """``run_git(repo, *args)`` runs git and returns stdout."""
    return git


@pytest.fixture
def feat_commit() -> Commit:
    return make_commit("feat1234567890", "feat: add user authentication")


@pytest.fixture
def fix_commit() -> Commit:
    return make_commit("fix1234567890", "fix(core): handle empty config")


@pytest.fixture
def breaking_commit() -> Commit:
    return make_commit(
        "break1234567890",
        "feat(api): replace config loader\n\nBREAKING CHANGE: config files must be TOML",
    )


@pytest.fixture
def chore_commit() -> Commit:
    return make_commit("chore1234567890", "chore: tidy imports")


@pytest.fixture
def sample_commits(
    feat_commit: Commit,
    fix_commit: Commit,
    breaking_commit: Commit,
    chore_commit: Commit,
) -> list[Commit]:
    return [
        feat_commit,
        fix_commit,
        make_commit("docs1234567890", "docs: update readme"),
        breaking_commit,
        chore_commit,
    ]


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Path:
    """An empty git repository on branch ``main`` with a committer identity."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "--quiet")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.name", "Release Bot")
    git(repo, "config", "user.email", "bot@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "config", "tag.gpgsign", "false")
    return repo


@pytest.fixture
def commit_file(temp_git_repo: Path) -> Callable[..., str]:
    """Factory committing a file change; returns the new commit sha."""
    counter = {"n": 0}

    def _commit(message: str, filename: str | None = None, content: str | None = None) -> str:
        counter["n"] += 1
        name = filename or f"file{counter['n']}.txt"
        (temp_git_repo / name).write_text(content or f"change {counter['n']}\n")
        git(temp_git_repo, "add", name)
        git(temp_git_repo, "commit", "--quiet", "-m", message)
        return git(temp_git_repo, "rev-parse", "HEAD").strip()

    return _commit


@pytest.fixture
def temp_git_repo_with_pyproject(temp_git_repo: Path, commit_file: Callable[..., str]) -> Path:
    """A git repository whose first commit adds pyproject.toml (version 1.0.0)."""
    commit_file("chore: initial commit", "pyproject.toml", PYPROJECT)
    return temp_git_repo
