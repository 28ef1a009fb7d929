"""Core business logic for semrel.

This module contains the fundamental building blocks:
- Semantic version values and change categories
- Conventional commit classification and bump calculation
- Changelog composition
- Release pipeline orchestration
"""

from __future__ import annotations

from semrel.core.changelog import (
    Changelog,
    ChangelogSection,
    compose_changelog,
    parse_release_notes,
    prepend_changelog_entry,
    release_notes_or_fallback,
    render_release_notes,
)
from semrel.core.commits import (
    ParsedCommit,
    ReleaseDecision,
    calculate_bump,
    classify_message,
    decide_release,
    filter_skip_release_commits,
    format_commit_for_changelog,
    parse_commits,
)
from semrel.core.version import ChangeCategory, Version

__all__ = [
    # Version
    "ChangeCategory",
    # Changelog
    "Changelog",
    "ChangelogSection",
    # Commits
    "ParsedCommit",
    "ReleaseDecision",
    "Version",
    "calculate_bump",
    "classify_message",
    "compose_changelog",
    "decide_release",
    "filter_skip_release_commits",
    "format_commit_for_changelog",
    "parse_commits",
    "parse_release_notes",
    "prepend_changelog_entry",
    "release_notes_or_fallback",
    "render_release_notes",
]
