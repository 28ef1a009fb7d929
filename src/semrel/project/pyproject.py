"""pyproject.toml version manipulation.

The project manifest carries a single version field, either PEP 621
``[project].version`` or Poetry's ``[tool.poetry].version``.

Updates preserve formatting and comments by using a targeted regex
replacement inside the owning table rather than re-serializing the TOML.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from semrel.config.loader import find_pyproject_toml
from semrel.core.version import Version
from semrel.exceptions import InvalidVersionError, ProjectError, VersionNotFoundError

if TYPE_CHECKING:
    from pathlib import Path

# Tables that may own the version field, in lookup order.
_VERSION_TABLES = (r"\[project\]", r"\[tool\.poetry\]")
_VERSION_LINE = r'^(version\s*=\s*)["\']([^"\']+)["\']'


def _resolve(path: Path | None) -> Path:
    if path is None:
        return find_pyproject_toml()
    if path.is_dir():
        return find_pyproject_toml(path)
    return path


def _table_pattern(table: str) -> re.Pattern[str]:
    # The table header up to the next table header or end of file.
    return re.compile(rf"^{table}[ \t]*$.*?(?=^\[|\Z)", re.MULTILINE | re.DOTALL)


def get_pyproject_version(path: Path | None = None) -> str:
    """Get the version string from pyproject.toml.

    Args:
        path: Path to pyproject.toml or a directory to search from.

    Raises:
        VersionNotFoundError: If neither table declares a version.
    """
    pyproject_path = _resolve(path)
    content = pyproject_path.read_text(encoding="utf-8")

    for table in _VERSION_TABLES:
        section = _table_pattern(table).search(content)
        if section is None:
            continue
        match = re.search(_VERSION_LINE, section.group(0), re.MULTILINE)
        if match:
            return match.group(2)

    raise VersionNotFoundError(
        f"Could not find version in {pyproject_path}. "
        "Expected [project].version or [tool.poetry].version."
    )


def read_manifest_version(path: Path | None = None) -> Version:
    """Read the manifest version as a :class:`Version`.

    Raises:
        VersionNotFoundError: If no version is declared.
        ProjectError: If the declared version is not ``major.minor.patch``.
    """
    text = get_pyproject_version(path)
    try:
        return Version.parse(text)
    except InvalidVersionError as e:
        raise ProjectError(f"Manifest version is not a semantic version: {text!r}") from e


def update_pyproject_version(path: Path | None, new_version: str) -> Path:
    """Replace the version in pyproject.toml.

    Args:
        path: Path to pyproject.toml or a directory containing it.
        new_version: Version string to write.

    Returns:
        Path to the updated file.

    Raises:
        VersionNotFoundError: If no version field can be found.
        ProjectError: If the file already holds ``new_version``.
    """
    pyproject_path = _resolve(path)
    content = pyproject_path.read_text(encoding="utf-8")

    def replace_in_table(match: re.Match[str]) -> str:
        return re.sub(
            _VERSION_LINE,
            rf'\g<1>"{new_version}"',
            match.group(0),
            count=1,
            flags=re.MULTILINE,
        )

    for table in _VERSION_TABLES:
        pattern = _table_pattern(table)
        section = pattern.search(content)
        if section is None or not re.search(_VERSION_LINE, section.group(0), re.MULTILINE):
            continue

        new_content = pattern.sub(replace_in_table, content, count=1)
        if new_content == content:
            raise ProjectError(
                f"Version in {pyproject_path} was not updated. It may already be {new_version}."
            )
        pyproject_path.write_text(new_content, encoding="utf-8")
        return pyproject_path

    raise VersionNotFoundError(
        f"Could not find version to update in {pyproject_path}. "
        "Expected [project].version or [tool.poetry].version."
    )
