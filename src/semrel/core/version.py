"""Semantic version values and change categories.

A :class:`Version` is a plain ``major.minor.patch`` triple. Bumping is
driven by a :class:`ChangeCategory`, the severity class that the commit
classifier assigns to each commit. Versions below 1.0.0 follow exactly the
same arithmetic as any other major version.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

from semrel.exceptions import InvalidVersionError

_VERSION_RE = re.compile(r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


class ChangeCategory(IntEnum):
    """Severity of a change, ordered ``MAJOR > MINOR > PATCH > NONE``."""

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True, order=True)
class Version:
    """A ``major.minor.patch`` version."""

    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        if min(self.major, self.minor, self.patch) < 0:
            raise InvalidVersionError(f"Version components must be non-negative: {self!r}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``"1.2.3"`` (an optional leading ``v`` is accepted).

        Raises:
            InvalidVersionError: If the text is not three non-negative integers.
        """
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise InvalidVersionError(f"Invalid version: {text!r} (expected major.minor.patch)")
        major, minor, patch = (int(part) for part in match.groups())
        return cls(major, minor, patch)

    def bump(self, category: ChangeCategory) -> Version | None:
        """Return the next version for ``category``, or ``None`` for no change.

        - ``MAJOR``: increment major, reset minor and patch.
        - ``MINOR``: increment minor, reset patch.
        - ``PATCH``: increment patch.
        """
        if category is ChangeCategory.MAJOR:
            return Version(self.major + 1, 0, 0)
        if category is ChangeCategory.MINOR:
            return Version(self.major, self.minor + 1, 0)
        if category is ChangeCategory.PATCH:
            return Version(self.major, self.minor, self.patch + 1)
        return None

