"""Packaging and publishing through ``uv``.

:class:`UvPackager` refreshes the lock file and builds the sdist and wheel;
:class:`UvPublisher` uploads the built artifacts of one version to the
package registry. Both report success or raise; nothing is retried.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from semrel.exceptions import PackagerError, PublishError
from semrel.logging import get_logger
from semrel.process import run_command

if TYPE_CHECKING:
    from pathlib import Path

    from semrel.core.version import Version
    from semrel.process import CommandResult

log = get_logger("semrel.project.packager")


def _normalize_dist_name(name: str) -> str:
    # Wheel and sdist file names use the normalized project name.
    return re.sub(r"[-_.]+", "_", name).lower()


class UvPackager:
    """Lock and build a project with ``uv``."""

    def __init__(self, project_path: Path, *, dist_dir: Path | None = None) -> None:
        self._root = project_path
        self.dist_dir = dist_dir if dist_dir is not None else project_path / "dist"
        if not self.dist_dir.is_absolute():
            self.dist_dir = project_path / self.dist_dir

    def _run(self, cmd: list[str], action: str) -> CommandResult:
        try:
            result = run_command(cmd, cwd=self._root)
        except FileNotFoundError as e:
            raise PackagerError(f"{cmd[0]} not found; install uv to {action}") from e
        if not result.ok:
            raise PackagerError(f"`{' '.join(cmd)}` failed", stderr=result.stderr)
        return result

    @property
    def lock_file(self) -> Path:
        return self._root / "uv.lock"

    def refresh_lock(self) -> Path:
        """Run ``uv lock`` so the lock file records the new version."""
        log.info("lock")
        self._run(["uv", "lock"], "refresh the lock file")
        return self.lock_file

    def build(self) -> Path:
        """Run ``uv build`` and return the directory holding the artifacts."""
        log.info("build", out_dir=str(self.dist_dir))
        self._run(["uv", "build", "--out-dir", str(self.dist_dir)], "build the package")
        return self.dist_dir


class UvPublisher:
    """Upload built distributions with ``uv publish``.

    Args:
        project_path: Working directory for the upload.
        token: Registry API token.
        publish_url: Upload endpoint; ``None`` means PyPI.
    """

    def __init__(self, project_path: Path, *, token: str, publish_url: str | None = None) -> None:
        self._root = project_path
        self._token = token
        self._publish_url = publish_url

    def __repr__(self) -> str:
        return f"UvPublisher(project_path={str(self._root)!r}, publish_url={self._publish_url!r})"

    def artifacts(self, dist_dir: Path, project_name: str, version: Version) -> list[Path]:
        """The sdist and wheels of ``project_name`` ``version`` inside ``dist_dir``."""
        prefix = _normalize_dist_name(f"{project_name}-{version}")
        if not dist_dir.is_dir():
            return []
        return sorted(
            p
            for p in dist_dir.iterdir()
            if p.is_file()
            and _normalize_dist_name(p.name).startswith(f"{prefix}_")
            and p.name.endswith((".whl", ".tar.gz"))
        )

    def publish(self, dist_dir: Path, project_name: str, version: Version) -> list[Path]:
        """Upload the artifacts of ``version``.

        Raises:
            PublishError: If no artifact exists on disk or the upload fails.
        """
        files = self.artifacts(dist_dir, project_name, version)
        if not files:
            raise PublishError(f"No built artifacts for {project_name} {version} in {dist_dir}")

        cmd = ["uv", "publish", "--token", self._token]
        if self._publish_url:
            cmd.extend(["--publish-url", self._publish_url])
        cmd.extend(str(p) for p in files)

        log.info("publish", files=[p.name for p in files])
        try:
            result = run_command(cmd, cwd=self._root, secrets=[self._token])
        except FileNotFoundError as e:
            raise PublishError("uv not found; install uv to publish") from e
        if not result.ok:
            raise PublishError(
                f"uv publish failed for {project_name} {version}", stderr=result.stderr
            )
        return files
