"""Conventional commit classification and bump calculation.

Each commit message is classified into exactly one
:class:`~semrel.core.version.ChangeCategory`:

1. A breaking marker forces ``MAJOR`` regardless of the commit type: either
   ``!`` right before the header colon (``feat(api)!: ...``) or the
   breaking pattern (``BREAKING CHANGE:`` by default) anywhere in the message.
2. Otherwise the header type decides, case-insensitively: types listed in
   ``types_major`` / ``types_minor`` / ``types_patch`` (``feat`` and
   ``fix`` by default) map to their category, everything else to ``NONE``.

Classification never fails; a message that is not a conventional commit
simply has no category. The aggregate over a commit range is the maximum
category observed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from semrel.config.models import CommitsConfig
from semrel.core.version import ChangeCategory, Version

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from semrel.vcs.git import Commit

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()]*)\))?"
    r"(?P<breaking>!)?"
    r":\s*(?P<description>.*)$"
)

_DEFAULT_CONFIG = CommitsConfig()


@dataclass(frozen=True)
class ParsedCommit:
    """A commit together with its conventional-commit fields and category."""

    commit: Commit
    commit_type: str | None
    scope: str | None
    description: str
    is_breaking: bool
    category: ChangeCategory

    @property
    def is_conventional(self) -> bool:
        return self.commit_type is not None

    @classmethod
    def from_commit(cls, commit: Commit, config: CommitsConfig | None = None) -> ParsedCommit:
        config = config or _DEFAULT_CONFIG
        header = commit.summary
        match = _HEADER_RE.match(header)

        if match:
            commit_type = match.group("type").lower()
            scope = match.group("scope") or None
            description = match.group("description").strip()
            header_breaking = match.group("breaking") is not None
        else:
            commit_type = None
            scope = None
            description = header
            header_breaking = False

        is_breaking = header_breaking or _has_breaking_marker(commit.message, config)
        return cls(
            commit=commit,
            commit_type=commit_type,
            scope=scope,
            description=description,
            is_breaking=is_breaking,
            category=_category_for(commit_type, is_breaking, config),
        )


def _has_breaking_marker(message: str, config: CommitsConfig) -> bool:
    return re.search(config.breaking_pattern, message) is not None


def _category_for(
    commit_type: str | None, is_breaking: bool, config: CommitsConfig
) -> ChangeCategory:
    if is_breaking:
        return ChangeCategory.MAJOR
    if commit_type is None:
        return ChangeCategory.NONE
    if commit_type in _lowered(config.types_major):
        return ChangeCategory.MAJOR
    if commit_type in _lowered(config.types_minor):
        return ChangeCategory.MINOR
    if commit_type in _lowered(config.types_patch):
        return ChangeCategory.PATCH
    return ChangeCategory.NONE


def _lowered(types: Iterable[str]) -> set[str]:
    return {t.lower() for t in types}


def classify_message(message: str, config: CommitsConfig | None = None) -> ChangeCategory:
    """Classify a raw commit message.

    Args:
        message: Header line plus optional body and footers.
        config: Type mappings and breaking pattern; defaults apply if omitted.

    Returns:
        The change category. Never raises.
    """
    config = config or _DEFAULT_CONFIG
    header = message.split("\n", 1)[0].strip()
    match = _HEADER_RE.match(header)
    commit_type = match.group("type").lower() if match else None
    is_breaking = bool(match and match.group("breaking")) or _has_breaking_marker(message, config)
    return _category_for(commit_type, is_breaking, config)


def parse_commits(commits: Iterable[Commit], config: CommitsConfig) -> list[ParsedCommit]:
    """Parse every commit, keeping their order."""
    return [ParsedCommit.from_commit(commit, config) for commit in commits]


def filter_skip_release_commits(
    commits: Sequence[Commit],
    patterns: Sequence[str],
) -> list[Commit]:
    """Drop commits whose message contains a skip-release marker.

    Markers are matched case-insensitively anywhere in the message.
    """
    if not patterns:
        return list(commits)
    lowered = [p.lower() for p in patterns]
    return [c for c in commits if not any(p in c.message.lower() for p in lowered)]


def calculate_bump(parsed: Iterable[ParsedCommit]) -> ChangeCategory:
    """Aggregate category over a commit range: the highest one observed.

    A single ``MAJOR`` commit outweighs any number of ``MINOR`` or ``PATCH``
    commits. An empty range yields ``NONE``.
    """
    return max((pc.category for pc in parsed), default=ChangeCategory.NONE)


def format_commit_for_changelog(
    pc: ParsedCommit,
    *,
    include_scope: bool = True,
    include_sha: bool = False,
) -> str:
    """Render one changelog line (without the leading bullet)."""
    text = pc.description or pc.commit.summary
    if include_scope and pc.scope:
        text = f"**{pc.scope}:** {text}"
    if include_sha:
        text = f"{text} ({pc.commit.short_sha})"
    return text


@dataclass(frozen=True)
class ReleaseDecision:
    """Outcome of the version bump calculation.

    ``new_version`` is ``None`` exactly when ``category`` is ``NONE``; the
    pipeline must then stop before mutating anything.
    """

    category: ChangeCategory
    current_version: Version
    new_version: Version | None
    commits: tuple[ParsedCommit, ...] = ()

    @property
    def should_release(self) -> bool:
        return self.new_version is not None


def decide_release(
    commits: Sequence[Commit],
    current_version: Version,
    config: CommitsConfig | None = None,
) -> ReleaseDecision:
    """Classify a commit range and compute the resulting version.

    Commits carrying a skip-release marker are ignored. The result depends
    only on the commits, their order and ``current_version``.
    """
    config = config or _DEFAULT_CONFIG
    releasable = filter_skip_release_commits(commits, config.skip_release_patterns)
    parsed = parse_commits(releasable, config)
    category = calculate_bump(parsed)
    return ReleaseDecision(
        category=category,
        current_version=current_version,
        new_version=current_version.bump(category),
        commits=tuple(parsed),
    )
