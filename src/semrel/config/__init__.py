"""Configuration management for semrel."""

from __future__ import annotations

from semrel.config.loader import build_pipeline_config, load_config
from semrel.config.models import (
    ChangelogConfig,
    CIConfig,
    CommitsConfig,
    GitHubConfig,
    PipelineConfig,
    PublishConfig,
    RemoteCredentials,
    SemrelSettings,
)

__all__ = [
    "CIConfig",
    "ChangelogConfig",
    "CommitsConfig",
    "GitHubConfig",
    "PipelineConfig",
    "PublishConfig",
    "RemoteCredentials",
    "SemrelSettings",
    "build_pipeline_config",
    "load_config",
]
