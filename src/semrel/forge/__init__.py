"""Release-hosting collaborators."""

from __future__ import annotations

from semrel.forge.github import GitHubReleases, parse_github_remote

__all__ = [
    "GitHubReleases",
    "parse_github_remote",
]
