"""Configuration models.

Two layers of configuration exist:

- :class:`SemrelSettings` mirrors the ``[tool.semrel]`` table of
  ``pyproject.toml``; every field has a default so an absent table is valid.
- :class:`PipelineConfig` is the immutable value the release pipeline runs
  with. It combines the settings with command-line switches, the committer
  identity and remote credentials, and is only ever built through
  :meth:`PipelineConfig.build`, which validates the combination.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from semrel.exceptions import ConfigValidationError
from semrel.vcs.git import Signature


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CommitsConfig(_Section):
    """How commit messages map to change categories."""

    types_major: list[str] = Field(default_factory=list)
    types_minor: list[str] = Field(default_factory=lambda: ["feat"])
    types_patch: list[str] = Field(default_factory=lambda: ["fix"])
    breaking_pattern: str = r"BREAKING[ -]CHANGE:"
    skip_release_patterns: list[str] = Field(
        default_factory=lambda: ["[skip release]", "[release skip]", "[no release]"]
    )

    @field_validator("breaking_pattern")
    @classmethod
    def _compile_breaking_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value


class ChangelogConfig(_Section):
    """Changelog file and release notes rendering."""

    path: Path = Path("CHANGELOG.md")
    fallback_text: str = "Stable version"
    include_scope: bool = True
    include_sha: bool = True


class CIConfig(_Section):
    """Build-leader barrier tuning."""

    enabled: bool = True
    poll_interval: float = Field(default=5.0, gt=0)
    max_wait: float = Field(default=3600.0, gt=0)
    travis_api_url: str = "https://api.travis-ci.com"


class GitHubConfig(_Section):
    """Release hosting on GitHub."""

    api_url: str = "https://api.github.com"
    propagation_delay: float = Field(default=1.0, ge=0)


class PublishConfig(_Section):
    """Package registry publishing."""

    enabled: bool = True
    publish_url: str | None = None
    dist_dir: Path = Path("dist")


class SemrelSettings(_Section):
    """The ``[tool.semrel]`` table."""

    release_branch: str = "master"
    remote: str = "origin"
    tag_prefix: str = "v"
    commit_message: str = "chore(release): {version}"

    commits: CommitsConfig = Field(default_factory=CommitsConfig)
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    ci: CIConfig = Field(default_factory=CIConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)

    @property
    def tag_pattern(self) -> str:
        return f"{self.tag_prefix}*"

    def tag_name(self, version: object) -> str:
        return f"{self.tag_prefix}{version}"


class RemoteCredentials(_Section):
    """Everything needed to talk to the hosting service and the registry."""

    owner: str
    repo: str
    github_token: str = Field(repr=False)
    registry_token: str = Field(repr=False)


class PipelineConfig(BaseModel):
    """Validated, immutable configuration of one pipeline run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    dry_run: bool
    release_mode: bool
    release_branch: str = Field(min_length=1)
    repository_path: Path
    committer: Signature
    credentials: RemoteCredentials | None = None
    settings: SemrelSettings = Field(default_factory=SemrelSettings)

    @model_validator(mode="after")
    def _check_credentials(self) -> PipelineConfig:
        if self.requires_credentials and self.credentials is None:
            raise ValueError(
                "release mode needs remote credentials (GH_TOKEN and a registry token)"
            )
        return self

    @property
    def requires_credentials(self) -> bool:
        """Remote steps run only when writing in release mode."""
        return not self.dry_run and self.release_mode

    @classmethod
    def build(cls, **values: Any) -> PipelineConfig:
        """Assemble and validate a configuration.

        Raises:
            ConfigValidationError: If any field is missing or inconsistent.
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigValidationError(_format_errors(e)) from e


def _format_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "config"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
