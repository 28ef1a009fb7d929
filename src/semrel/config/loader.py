"""Configuration loading.

Settings live in the ``[tool.semrel]`` table of the project's
``pyproject.toml``. Credentials never do: they come from the environment
and are only looked up when the run actually needs them.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from semrel.ci.environment import is_ci
from semrel.config.models import PipelineConfig, RemoteCredentials, SemrelSettings
from semrel.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError, GitError
from semrel.forge.github import parse_github_remote

if TYPE_CHECKING:
    from collections.abc import Mapping

    from semrel.vcs.git import GitRepository

GITHUB_TOKEN_VARS = ("GH_TOKEN", "GITHUB_TOKEN")
REGISTRY_TOKEN_VARS = ("UV_PUBLISH_TOKEN", "PYPI_TOKEN")


def find_pyproject_toml(start: Path | None = None) -> Path:
    """Find pyproject.toml in ``start`` or any of its parents.

    Raises:
        ConfigNotFoundError: If no pyproject.toml exists up to the filesystem root.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    raise ConfigNotFoundError(f"No pyproject.toml found in {current} or its parents")


def load_pyproject_toml(path: Path) -> dict[str, Any]:
    """Parse a pyproject.toml file.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigValidationError: If the file is not valid TOML.
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"File not found: {path}")
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def extract_semrel_config(pyproject: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.semrel]`` table, or an empty dict."""
    return pyproject.get("tool", {}).get("semrel", {})


def load_config(path: Path | None = None) -> SemrelSettings:
    """Load settings for the project at ``path``.

    A pyproject.toml without a ``[tool.semrel]`` table yields the defaults.

    Raises:
        ConfigNotFoundError: If no pyproject.toml can be found.
        ConfigValidationError: If the table contains invalid values.
    """
    pyproject_path = find_pyproject_toml(path)
    data = extract_semrel_config(load_pyproject_toml(pyproject_path))
    try:
        return SemrelSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid [tool.semrel] configuration: {e}") from e


def _project_table(path: Path | None) -> dict[str, Any]:
    pyproject = load_pyproject_toml(find_pyproject_toml(path))
    if "project" in pyproject:
        return pyproject["project"]
    return pyproject.get("tool", {}).get("poetry", {})


def get_project_name(path: Path | None = None) -> str:
    """Return ``[project].name`` (or ``[tool.poetry].name``)."""
    name = _project_table(path).get("name")
    if not name:
        raise ConfigValidationError("pyproject.toml has no project name")
    return name


def parse_switch(answer: str) -> bool:
    """Interpret yes/no style switches; anything unrecognized is ``False``."""
    return answer.strip().lower() in {"yes", "true", "1", "y", "on"}


def _first_env(env: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        if env.get(name):
            return env[name]
    return None


def resolve_credentials(
    repo: GitRepository,
    settings: SemrelSettings,
    env: Mapping[str, str],
) -> RemoteCredentials:
    """Collect what the push/release/publish steps need.

    Raises:
        ConfigError: If the remote URL is unusable or a token is missing.
    """
    try:
        remote_url = repo.get_remote_url(settings.remote)
    except GitError as e:
        raise ConfigError(f"Could not determine the {settings.remote} remote url: {e}") from e
    owner, name = parse_github_remote(remote_url)

    github_token = _first_env(env, GITHUB_TOKEN_VARS)
    if not github_token:
        raise ConfigError(f"{' or '.join(GITHUB_TOKEN_VARS)} not set")

    registry_token = _first_env(env, REGISTRY_TOKEN_VARS)
    if settings.publish.enabled and not registry_token:
        raise ConfigError(f"{' or '.join(REGISTRY_TOKEN_VARS)} not set")

    return RemoteCredentials(
        owner=owner,
        repo=name,
        github_token=github_token,
        registry_token=registry_token or "",
    )


def build_pipeline_config(
    repo: GitRepository,
    *,
    write: bool,
    release: bool,
    branch: str | None = None,
    env: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Assemble the pipeline configuration for ``repo``.

    On a CI service the run is never a dry run, regardless of ``write``.
    Credentials are resolved only when the run will touch remote services.

    Raises:
        ConfigError: If settings, committer identity or credentials are missing.
    """
    env = os.environ if env is None else env
    settings = load_config(repo.path)
    dry_run = False if is_ci(env) else not write

    try:
        committer = repo.get_signature(env)
    except GitError as e:
        raise ConfigError(str(e)) from e

    credentials = None
    if not dry_run and release:
        credentials = resolve_credentials(repo, settings, env)

    return PipelineConfig.build(
        dry_run=dry_run,
        release_mode=release,
        release_branch=branch or settings.release_branch,
        repository_path=repo.path,
        committer=committer,
        credentials=credentials,
        settings=settings,
    )
