"""Changelog composition.

Release notes are built from the same commit range that decided the
version bump. Every commit whose category is not ``NONE`` lands in one
section:

- ``MAJOR`` → *Breaking Changes*
- ``MINOR`` → *Features*
- ``PATCH`` → *Bug Fixes*

Composition and rendering are pure: the same commits and versions always
produce the same text, which is used verbatim for the changelog file, the
tag annotation and the hosted release body. Dates appear only in the
changelog file heading written by :func:`prepend_changelog_entry`.

When no commit qualifies, :attr:`Changelog.is_empty` is the "no content"
signal; the caller substitutes a fallback line instead of empty notes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from semrel.config.models import CommitsConfig
from semrel.core.commits import format_commit_for_changelog, parse_commits
from semrel.core.version import ChangeCategory
from semrel.exceptions import ChangelogError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date
    from pathlib import Path

    from semrel.core.commits import ParsedCommit
    from semrel.core.version import Version
    from semrel.vcs.git import Commit

CHANGELOG_TITLE = "# Changelog"
DEFAULT_FALLBACK_TEXT = "Stable version"

_SECTION_HEADING_RE = re.compile(r"^###\s+(?P<title>.+?)\s*$")
_ENTRY_RE = re.compile(r"^[-*]\s+(?P<text>.+)$")


class ChangelogSection(StrEnum):
    BREAKING_CHANGES = "Breaking Changes"
    FEATURES = "Features"
    FIXES = "Bug Fixes"


_SECTION_FOR_CATEGORY = {
    ChangeCategory.MAJOR: ChangelogSection.BREAKING_CHANGES,
    ChangeCategory.MINOR: ChangelogSection.FEATURES,
    ChangeCategory.PATCH: ChangelogSection.FIXES,
}


@dataclass(frozen=True)
class Changelog:
    """Release notes grouped by section, in commit order."""

    old_version: Version
    new_version: Version
    breaking_changes: tuple[ParsedCommit, ...] = ()
    features: tuple[ParsedCommit, ...] = ()
    fixes: tuple[ParsedCommit, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.breaking_changes or self.features or self.fixes)

    def sections(self) -> list[tuple[ChangelogSection, tuple[ParsedCommit, ...]]]:
        """Non-empty sections in display order."""
        ordered = [
            (ChangelogSection.BREAKING_CHANGES, self.breaking_changes),
            (ChangelogSection.FEATURES, self.features),
            (ChangelogSection.FIXES, self.fixes),
        ]
        return [(section, entries) for section, entries in ordered if entries]


def compose_changelog(
    commits: Iterable[Commit],
    old_version: Version,
    new_version: Version,
    config: CommitsConfig | None = None,
) -> Changelog:
    """Classify ``commits`` and group them into changelog sections.

    Never fails; an empty commit range yields an empty changelog.
    """
    grouped: dict[ChangelogSection, list[ParsedCommit]] = {s: [] for s in ChangelogSection}
    for pc in parse_commits(commits, config or CommitsConfig()):
        section = _SECTION_FOR_CATEGORY.get(pc.category)
        if section is not None:
            grouped[section].append(pc)

    return Changelog(
        old_version=old_version,
        new_version=new_version,
        breaking_changes=tuple(grouped[ChangelogSection.BREAKING_CHANGES]),
        features=tuple(grouped[ChangelogSection.FEATURES]),
        fixes=tuple(grouped[ChangelogSection.FIXES]),
    )


def render_release_notes(
    changelog: Changelog,
    *,
    include_scope: bool = True,
    include_sha: bool = True,
) -> str:
    """Render the changelog as markdown sections.

    Returns an empty string for an empty changelog; callers should check
    :attr:`Changelog.is_empty` and use fallback text instead.
    """
    blocks = []
    for section, entries in changelog.sections():
        lines = [f"### {section}", ""]
        for pc in entries:
            text = format_commit_for_changelog(
                pc, include_scope=include_scope, include_sha=include_sha
            )
            lines.append(f"- {text}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def release_notes_or_fallback(
    changelog: Changelog,
    fallback: str = DEFAULT_FALLBACK_TEXT,
    *,
    include_scope: bool = True,
    include_sha: bool = True,
) -> str:
    """Rendered notes, or ``fallback`` when no commit qualified."""
    if changelog.is_empty:
        return fallback
    return render_release_notes(changelog, include_scope=include_scope, include_sha=include_sha)


def parse_release_notes(text: str) -> dict[ChangelogSection, list[str]]:
    """Recover section entries from text produced by :func:`render_release_notes`.

    Unknown headings and lines outside a known section are ignored.
    """
    parsed: dict[ChangelogSection, list[str]] = {}
    current: ChangelogSection | None = None
    for line in text.splitlines():
        heading = _SECTION_HEADING_RE.match(line)
        if heading:
            try:
                current = ChangelogSection(heading.group("title"))
            except ValueError:
                current = None
            else:
                parsed.setdefault(current, [])
            continue
        entry = _ENTRY_RE.match(line)
        if entry and current is not None:
            parsed[current].append(entry.group("text"))
    return parsed


def format_entry_heading(version: Version, released_on: date) -> str:
    return f"## [{version}] - {released_on.isoformat()}"


def prepend_changelog_entry(
    path: Path,
    version: Version,
    notes: str,
    released_on: date,
) -> Path:
    """Write ``notes`` for ``version`` above the existing entries of ``path``.

    The file keeps a leading ``# Changelog`` title when it has one and gets
    one when it is created.

    Raises:
        ChangelogError: If the file cannot be read or written.
    """
    entry = f"{format_entry_heading(version, released_on)}\n\n{notes.strip()}\n"
    try:
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        if not existing.strip():
            content = f"{CHANGELOG_TITLE}\n\n{entry}"
        elif existing.startswith("# "):
            title, _, rest = existing.partition("\n")
            content = f"{title}\n\n{entry}\n{rest.lstrip()}"
        else:
            content = f"{entry}\n{existing}"
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ChangelogError(f"Could not write {path}: {e}") from e
    return path
