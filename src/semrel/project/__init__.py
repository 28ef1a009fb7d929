"""Project manifest and packaging collaborators."""

from __future__ import annotations

from semrel.project.packager import UvPackager, UvPublisher
from semrel.project.pyproject import (
    get_pyproject_version,
    read_manifest_version,
    update_pyproject_version,
)

__all__ = [
    "UvPackager",
    "UvPublisher",
    "get_pyproject_version",
    "read_manifest_version",
    "update_pyproject_version",
]
