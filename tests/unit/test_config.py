"""Tests for configuration loading and validation."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from semrel.config.loader import (
    build_pipeline_config,
    extract_semrel_config,
    find_pyproject_toml,
    get_project_name,
    load_config,
    load_pyproject_toml,
    parse_switch,
    resolve_credentials,
)
from semrel.config.models import (
    ChangelogConfig,
    CIConfig,
    CommitsConfig,
    PipelineConfig,
    RemoteCredentials,
    SemrelSettings,
)
from semrel.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError
from semrel.vcs.git import GitRepository, Signature

COMMITTER = Signature(name="Release Bot", email="bot@example.com")
CREDENTIALS = RemoteCredentials(
    owner="acme", repo="widgets", github_token="gh-token", registry_token="pypi-token"
)


class TestSemrelSettings:
    """Tests for the SemrelSettings model."""

    def test_default_config(self):
        """Default configuration has sensible values."""
        settings = SemrelSettings()

        assert settings.release_branch == "master"
        assert settings.remote == "origin"
        assert settings.tag_prefix == "v"
        assert settings.changelog.path == Path("CHANGELOG.md")
        assert settings.changelog.fallback_text == "Stable version"

    def test_nested_defaults(self):
        """Nested sections have defaults."""
        settings = SemrelSettings()

        assert settings.commits.types_minor == ["feat"]
        assert settings.commits.types_patch == ["fix"]
        assert settings.ci.enabled is True
        assert settings.ci.poll_interval == 5.0
        assert settings.publish.enabled is True

    def test_tag_name(self):
        """Tag names and the tag pattern use the configured prefix."""
        settings = SemrelSettings(tag_prefix="release-")

        assert settings.tag_name("1.2.3") == "release-1.2.3"
        assert settings.tag_pattern == "release-*"

    def test_extra_fields_forbidden(self):
        """Typos in the table are reported instead of ignored."""
        with pytest.raises(ValueError):
            CommitsConfig(types_minr=["feat"])

    def test_breaking_pattern_must_compile(self):
        """An unbalanced regex never reaches the classifier."""
        with pytest.raises(ValueError, match="invalid regular expression"):
            CommitsConfig(breaking_pattern="BREAKING(")

    def test_custom_breaking_pattern(self):
        """A valid custom breaking pattern is kept as given."""
        assert CommitsConfig(breaking_pattern=r"^BREAKS:").breaking_pattern == r"^BREAKS:"

    def test_ci_intervals_must_be_positive(self):
        """A zero poll interval is rejected."""
        with pytest.raises(ValueError):
            CIConfig(poll_interval=0)

    def test_settings_are_frozen(self):
        """Settings sections cannot be changed after loading."""
        settings = ChangelogConfig()
        with pytest.raises(ValueError):
            settings.fallback_text = "changed"


class TestPipelineConfig:
    """Tests for PipelineConfig.build()."""

    def _values(self, **overrides):
        values = {
            "dry_run": False,
            "release_mode": True,
            "release_branch": "main",
            "repository_path": Path("/tmp/project"),
            "committer": COMMITTER,
            "credentials": CREDENTIALS,
        }
        values.update(overrides)
        return values

    def test_build_valid(self):
        """A complete release-mode configuration validates."""
        config = PipelineConfig.build(**self._values())

        assert config.requires_credentials
        assert config.credentials == CREDENTIALS
        assert config.settings == SemrelSettings()

    def test_release_mode_requires_credentials(self):
        """Release mode without credentials is rejected."""
        with pytest.raises(ConfigValidationError, match="credentials"):
            PipelineConfig.build(**self._values(credentials=None))

    def test_dry_run_needs_no_credentials(self):
        """A dry run needs no credentials."""
        config = PipelineConfig.build(**self._values(dry_run=True, credentials=None))
        assert not config.requires_credentials

    def test_local_mode_needs_no_credentials(self):
        """Local mode needs no credentials."""
        config = PipelineConfig.build(**self._values(release_mode=False, credentials=None))
        assert not config.requires_credentials

    def test_empty_branch_rejected(self):
        """An empty release branch is rejected."""
        with pytest.raises(ConfigValidationError, match="release_branch"):
            PipelineConfig.build(**self._values(release_branch=""))

    def test_missing_field_rejected(self):
        """A missing committer is reported by field name."""
        values = self._values()
        del values["committer"]
        with pytest.raises(ConfigValidationError, match="committer"):
            PipelineConfig.build(**values)

    def test_tokens_not_in_repr(self):
        """Tokens are hidden from the repr."""
        config = PipelineConfig.build(**self._values())
        assert "gh-token" not in repr(config)
        assert "pypi-token" not in repr(config)

    def test_immutable(self):
        """A built configuration cannot be changed."""
        config = PipelineConfig.build(**self._values())
        with pytest.raises(ValueError):
            config.dry_run = True


class TestParseSwitch:
    """Tests for parse_switch()."""

    @pytest.mark.parametrize("answer", ["yes", "YES", "true", "1", "y", "on", " yes "])
    def test_truthy(self, answer: str):
        """Yes-like answers switch on."""
        assert parse_switch(answer)

    @pytest.mark.parametrize("answer", ["no", "false", "0", "", "maybe"])
    def test_falsy(self, answer: str):
        """Anything else switches off."""
        assert not parse_switch(answer)


class TestFindPyprojectToml:
    """Tests for find_pyproject_toml()."""

    def test_find_in_current_dir(self, tmp_path: Path):
        """pyproject.toml is found in the given directory."""
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("[project]\nname = 'test'")

        assert find_pyproject_toml(tmp_path) == pyproject

    def test_find_in_parent_dir(self, tmp_path: Path):
        """pyproject.toml is found in a parent directory."""
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("[project]\nname = 'test'")
        subdir = tmp_path / "src" / "package"
        subdir.mkdir(parents=True)

        assert find_pyproject_toml(subdir) == pyproject

    def test_not_found_raises(self, tmp_path: Path):
        """A tree without pyproject.toml raises ConfigNotFoundError."""
        empty_dir = tmp_path / "empty"
        empty_dir.mkdir()

        # Guard against a pyproject.toml somewhere above tmp_path.
        try:
            found = find_pyproject_toml(empty_dir)
        except ConfigNotFoundError:
            return
        assert tmp_path not in found.parents


class TestLoadPyprojectToml:
    """Tests for load_pyproject_toml()."""

    def test_load_valid_toml(self, tmp_path: Path):
        """A valid file is parsed into a dict."""
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text('[project]\nname = "test-project"\nversion = "1.0.0"\n')

        data = load_pyproject_toml(pyproject)

        assert data["project"]["name"] == "test-project"

    def test_load_nonexistent_raises(self, tmp_path: Path):
        """A missing file raises ConfigNotFoundError."""
        with pytest.raises(ConfigNotFoundError):
            load_pyproject_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml_raises(self, tmp_path: Path):
        """Malformed TOML raises ConfigValidationError."""
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("this is not [valid toml")

        with pytest.raises(ConfigValidationError, match="Invalid TOML"):
            load_pyproject_toml(pyproject)


class TestLoadConfig:
    """Tests for load_config() and project metadata helpers."""

    def test_extract_missing_table(self):
        """A manifest without the table yields an empty dict."""
        assert extract_semrel_config({"project": {"name": "x"}}) == {}

    def test_defaults_without_table(self, tmp_path: Path):
        """A manifest without the table yields default settings."""
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\nversion = "1.0.0"\n')

        assert load_config(tmp_path) == SemrelSettings()

    def test_reads_table(self, tmp_path: Path):
        """Values in the table and its sections are loaded."""
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "x"\nversion = "1.0.0"\n\n'
            "[tool.semrel]\n"
            'release_branch = "main"\n'
            'tag_prefix = ""\n\n'
            "[tool.semrel.commits]\n"
            'types_patch = ["fix", "perf"]\n\n'
            "[tool.semrel.ci]\n"
            "enabled = false\n"
        )

        settings = load_config(tmp_path)

        assert settings.release_branch == "main"
        assert settings.tag_prefix == ""
        assert settings.commits.types_patch == ["fix", "perf"]
        assert settings.ci.enabled is False

    def test_invalid_table_raises(self, tmp_path: Path):
        """Unknown keys in the table are rejected."""
        (tmp_path / "pyproject.toml").write_text("[tool.semrel]\nunknown_key = 1\n")

        with pytest.raises(ConfigValidationError, match="tool.semrel"):
            load_config(tmp_path)

    def test_project_name(self, tmp_path: Path):
        """The package name comes from [project]."""
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\nversion = "0.3.0"\n')

        assert get_project_name(tmp_path) == "demo"

    def test_poetry_fallback(self, tmp_path: Path):
        """The name falls back to [tool.poetry]."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.poetry]\nname = "legacy"\nversion = "2.1.0"\n'
        )

        assert get_project_name(tmp_path) == "legacy"

    def test_missing_name_raises(self, tmp_path: Path):
        """A manifest without a package name cannot be published."""
        (tmp_path / "pyproject.toml").write_text('[project]\nversion = "1.0.0"\n')

        with pytest.raises(ConfigValidationError, match="project name"):
            get_project_name(tmp_path)

    def test_invalid_breaking_pattern_raises(self, tmp_path: Path):
        """A broken breaking-change regex is rejected when the table is loaded."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.semrel.commits]\nbreaking_pattern = "BREAKING("\n'
        )

        with pytest.raises(ConfigValidationError, match="breaking_pattern"):
            load_config(tmp_path)

    def test_unknown_publish_tool_raises(self, tmp_path: Path):
        """Only uv publishes, so a tool setting is not accepted."""
        (tmp_path / "pyproject.toml").write_text('[tool.semrel.publish]\ntool = "twine"\n')

        with pytest.raises(ConfigValidationError, match="tool.semrel"):
            load_config(tmp_path)


class TestBuildPipelineConfig:
    """Tests for build_pipeline_config() against a real repository."""

    @pytest.fixture
    def repo(
        self, temp_git_repo_with_pyproject: Path, run_git: Callable[..., str]
    ) -> GitRepository:
        run_git(
            temp_git_repo_with_pyproject,
            "remote",
            "add",
            "origin",
            "https://github.com/acme/widgets.git",
        )
        return GitRepository(temp_git_repo_with_pyproject)

    def test_local_dry_run(self, repo: GitRepository):
        """Without --write and off CI nothing is written and no token is needed."""
        config = build_pipeline_config(repo, write=False, release=True, env={})

        assert config.dry_run is True
        assert config.credentials is None
        assert config.release_branch == "main"
        assert config.committer == COMMITTER

    def test_ci_forces_write(self, repo: GitRepository):
        """On CI the run writes and needs credentials from the environment."""
        env = {"CI": "true", "GH_TOKEN": "gh", "UV_PUBLISH_TOKEN": "pypi"}

        config = build_pipeline_config(repo, write=False, release=True, env=env)

        assert config.dry_run is False
        assert config.credentials is not None
        assert config.credentials.owner == "acme"
        assert config.credentials.repo == "widgets"

    def test_write_without_release_needs_no_token(self, repo: GitRepository):
        """Writing locally without release mode needs no token."""
        config = build_pipeline_config(repo, write=True, release=False, env={})

        assert config.dry_run is False
        assert config.credentials is None

    def test_missing_token_raises(self, repo: GitRepository):
        """Release mode without a GitHub token is rejected."""
        with pytest.raises(ConfigError, match="GH_TOKEN"):
            build_pipeline_config(repo, write=True, release=True, env={})

    def test_branch_override(self, repo: GitRepository):
        """The branch option overrides the configured release branch."""
        config = build_pipeline_config(repo, write=False, release=False, branch="stable", env={})
        assert config.release_branch == "stable"

    def test_committer_from_env(self, repo: GitRepository):
        """Committer variables set the release identity."""
        env = {"GIT_COMMITTER_NAME": "CI", "GIT_COMMITTER_EMAIL": "ci@example.com"}

        config = build_pipeline_config(repo, write=False, release=False, env=env)

        assert config.committer == Signature(name="CI", email="ci@example.com")


class TestResolveCredentials:
    """Tests for resolve_credentials() with a stubbed repository."""

    class _Repo:
        def __init__(self, url: str) -> None:
            self.url = url

        def get_remote_url(self, remote: str) -> str:
            return self.url

    def test_github_token_fallback_name(self):
        """GITHUB_TOKEN and PYPI_TOKEN are accepted as alternatives."""
        repo = self._Repo("git@github.com:acme/widgets.git")
        env = {"GITHUB_TOKEN": "gh", "PYPI_TOKEN": "pypi"}

        credentials = resolve_credentials(repo, SemrelSettings(), env)

        assert credentials.github_token == "gh"
        assert credentials.registry_token == "pypi"

    def test_registry_token_optional_when_publish_disabled(self):
        """The registry token is optional when publishing is off."""
        repo = self._Repo("https://github.com/acme/widgets")
        settings = SemrelSettings.model_validate({"publish": {"enabled": False}})

        credentials = resolve_credentials(repo, settings, {"GH_TOKEN": "gh"})

        assert credentials.registry_token == ""

    def test_missing_registry_token(self):
        """Publishing without a registry token is rejected."""
        repo = self._Repo("https://github.com/acme/widgets")

        with pytest.raises(ConfigError, match="UV_PUBLISH_TOKEN"):
            resolve_credentials(repo, SemrelSettings(), {"GH_TOKEN": "gh"})

    def test_unparseable_remote(self):
        """A remote without owner and repository is rejected."""
        repo = self._Repo("https://example.com/widgets")

        with pytest.raises(ConfigError):
            resolve_credentials(repo, SemrelSettings(), {"GH_TOKEN": "gh"})
