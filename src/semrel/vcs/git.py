"""Git repository operations.

:class:`GitRepository` is the repository collaborator of the release
pipeline. It shells out to the ``git`` executable through
:func:`semrel.process.run_command` and exposes only what a release needs:
branch name, commits since the last release tag, committer identity,
commit, annotated tag and push.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from semrel.exceptions import GitError
from semrel.logging import get_logger
from semrel.process import run_command

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = get_logger("semrel.vcs.git")

# Field and record separators for `git log --format`.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%B"]) + _RECORD_SEP


@dataclass(frozen=True)
class Commit:
    """A commit as read from the repository."""

    sha: str
    message: str
    author_name: str
    author_email: str
    date: datetime

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0].strip()


@dataclass(frozen=True)
class Signature:
    """Name and email used for release commits and tags."""

    name: str
    email: str

    def as_env(self) -> dict[str, str]:
        return {
            "GIT_AUTHOR_NAME": self.name,
            "GIT_AUTHOR_EMAIL": self.email,
            "GIT_COMMITTER_NAME": self.name,
            "GIT_COMMITTER_EMAIL": self.email,
        }


class GitRepository:
    """A git working tree on disk."""

    def __init__(self, path: Path | str) -> None:
        """Open the repository containing ``path``.

        Raises:
            GitError: If ``path`` is not inside a git work tree.
        """
        start = Path(path).resolve()
        if not start.is_dir():
            raise GitError(f"Path does not exist or is not a directory: {start}")
        toplevel = self._run(["rev-parse", "--show-toplevel"], cwd=start)
        self.path = Path(toplevel.strip())

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    @staticmethod
    def _run(
        args: Sequence[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> str:
        try:
            result = run_command(["git", *args], cwd=cwd, env=env)
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e
        if not result.ok:
            raise GitError(f"git {args[0]} failed", stderr=result.stderr)
        return result.stdout

    def _git(self, *args: str, env: dict[str, str] | None = None) -> str:
        return self._run(args, cwd=self.path, env=env)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def current_branch(self) -> str | None:
        """Return the checked-out branch name, or ``None`` on a detached HEAD."""
        try:
            name = self._git("symbolic-ref", "--quiet", "--short", "HEAD").strip()
        except GitError:
            return None
        return name or None

    def get_latest_tag(self, pattern: str = "v*") -> str | None:
        """Return the most recent tag reachable from HEAD matching ``pattern``."""
        try:
            tag = self._git("describe", "--tags", "--abbrev=0", "--match", pattern).strip()
        except GitError:
            return None
        return tag or None

    def get_commits_since_tag(self, tag: str | None) -> list[Commit]:
        """Return commits in ``(tag, HEAD]``, newest first.

        With ``tag=None`` every commit reachable from HEAD is returned.
        A repository without any commit yields an empty list.
        """
        try:
            self._git("rev-parse", "--verify", "--quiet", "HEAD")
        except GitError:
            return []

        rev_range = f"{tag}..HEAD" if tag else "HEAD"
        output = self._git("log", f"--format={_LOG_FORMAT}", rev_range)

        commits = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, author_name, author_email, date, message = record.split(_FIELD_SEP, 4)
            commits.append(
                Commit(
                    sha=sha,
                    message=message.strip(),
                    author_name=author_name,
                    author_email=author_email,
                    date=datetime.fromisoformat(date),
                )
            )
        log.debug("commits_since_tag", tag=tag, count=len(commits))
        return commits

    def get_remote_url(self, remote: str = "origin") -> str:
        return self._git("remote", "get-url", remote).strip()

    def get_signature(self, env: Mapping[str, str] | None = None) -> Signature:
        """Resolve the committer identity for release commits.

        ``GIT_COMMITTER_NAME`` / ``GIT_COMMITTER_EMAIL`` take precedence;
        otherwise git's own configuration (local, global, system) is used.

        Raises:
            GitError: If no name or email can be found.
        """
        env = os.environ if env is None else env
        name = env.get("GIT_COMMITTER_NAME") or self._config_value("user.name")
        email = env.get("GIT_COMMITTER_EMAIL") or self._config_value("user.email")
        if not name or not email:
            raise GitError(
                "A release commit needs a committer name and email address. "
                "Set GIT_COMMITTER_NAME and GIT_COMMITTER_EMAIL, or configure "
                "user.name and user.email in git."
            )
        return Signature(name=name, email=email)

    def _config_value(self, key: str) -> str | None:
        try:
            value = self._git("config", "--get", key).strip()
        except GitError:
            return None
        return value or None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def commit_files(self, paths: Sequence[Path], message: str, signature: Signature) -> str:
        """Stage ``paths`` and commit them. Returns the new commit sha."""
        relative = [self._relative(p) for p in paths]
        self._git("add", "--", *relative)
        self._git("commit", "--message", message, env=signature.as_env())
        sha = self._git("rev-parse", "HEAD").strip()
        log.info("commit_created", sha=sha[:7], files=relative)
        return sha

    def _relative(self, path: Path) -> str:
        if not path.is_absolute():
            return str(path)
        try:
            return str(path.resolve().relative_to(self.path))
        except ValueError as e:
            raise GitError(
                f"Cannot commit {path}: it lies outside the repository {self.path}"
            ) from e

    def create_tag(self, name: str, message: str, signature: Signature) -> None:
        """Create an annotated tag on HEAD."""
        self._git("tag", "--annotate", name, "--message", message, env=signature.as_env())
        log.info("tag_created", tag=name)

    def push(self, remote: str, branch: str, tag: str) -> None:
        """Push ``branch`` and ``tag`` to ``remote`` in one atomic push."""
        self._git(
            "push",
            "--atomic",
            remote,
            f"HEAD:refs/heads/{branch}",
            f"refs/tags/{tag}",
        )
        log.info("pushed", remote=remote, branch=branch, tag=tag)
