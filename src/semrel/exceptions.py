"""Exception hierarchy for semrel.

Every error raised by semrel derives from :class:`SemrelError`, so the CLI
can catch one type and report it. Subclasses carry structured fields
(which step, which barrier reason, which stderr) instead of encoding them
in the message, so callers branch on kind rather than on string content.

Classification of commit messages never raises; an unrecognized message
simply yields ``ChangeCategory.NONE``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from semrel.ci.barrier import BarrierReason
    from semrel.core.pipeline import PipelineStep


class SemrelError(Exception):
    """Base class for all semrel errors."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(SemrelError):
    """Configuration is missing or invalid."""


class ConfigNotFoundError(ConfigError):
    """No pyproject.toml could be located."""


class ConfigValidationError(ConfigError):
    """Configuration values failed validation."""


# =============================================================================
# Repository
# =============================================================================


class RepositoryError(SemrelError):
    """Branch, commit, tag or push operation failed."""


class GitError(RepositoryError):
    """A git command exited with a non-zero status."""

    def __init__(self, message: str, *, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


# =============================================================================
# Project files
# =============================================================================


class ProjectError(SemrelError):
    """Project manifest could not be read or updated."""


class VersionNotFoundError(ProjectError):
    """The manifest has no recognizable version field."""


class InvalidVersionError(SemrelError, ValueError):
    """A version string is not ``major.minor.patch``."""


class ChangelogError(SemrelError):
    """The changelog artifact could not be written."""


# =============================================================================
# External tools and services
# =============================================================================


class PackagerError(SemrelError):
    """The packaging tool reported a failure."""

    def __init__(self, message: str, *, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class PublishError(PackagerError):
    """Uploading to the package registry failed."""


class CIEnvironmentError(SemrelError):
    """The CI service could not report the status of the build matrix."""


class ForgeError(SemrelError):
    """The release-hosting service rejected a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# Pipeline
# =============================================================================


class BarrierError(SemrelError):
    """The CI build leader could not proceed."""

    def __init__(self, reason: BarrierReason, detail: str | None = None) -> None:
        message = f"CI barrier aborted: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


class PipelineStepError(SemrelError):
    """One step of the write sequence failed; later steps did not run."""

    def __init__(self, step: PipelineStep, cause: BaseException | None = None) -> None:
        message = f"Release step '{step}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.step = step
        self.cause = cause
