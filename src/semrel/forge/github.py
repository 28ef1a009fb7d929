"""GitHub releases via the REST API.

:class:`GitHubReleases` creates the release entry that accompanies a pushed
tag. Requests go through a synchronous :class:`httpx.Client`; a transport
can be injected so tests never touch the network.

Requests are sent exactly once. A failed release creation is reported to
the caller, never retried, because the pipeline must not create duplicate
releases.
"""

from __future__ import annotations

import re
from typing import Any

import httpx

from semrel.exceptions import ConfigError, ForgeError
from semrel.logging import get_logger

log = get_logger("semrel.forge.github")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0

# API version header for stable API behavior.
_API_VERSION = "2022-11-28"

_REMOTE_PATTERNS = (
    # https://github.com/owner/repo(.git)
    re.compile(r"^https?://(?:[^@/]+@)?[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    # git@github.com:owner/repo(.git)
    re.compile(r"^[^@]+@[^:]+:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?$"),
    # ssh://git@github.com/owner/repo(.git)
    re.compile(r"^ssh://(?:[^@/]+@)?[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
)


def parse_github_remote(url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a remote URL.

    Args:
        url: An https, ``ssh://`` or scp-style (``git@host:owner/repo``) URL.

    Returns:
        The owner and repository name, without a ``.git`` suffix.

    Raises:
        ConfigError: If the URL does not point to an owner/repository pair.
    """
    url = url.strip()
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group("owner"), match.group("repo")
    raise ConfigError(f"Could not extract owner and repository name from URL: {url}")


class GitHubReleases:
    """Release-hosting collaborator backed by the GitHub REST API.

    Args:
        owner: Repository owner.
        repo: Repository name.
        token: Bearer token with ``contents: write`` permission.
        api_url: API base URL (override for GitHub Enterprise Server).
        transport: Optional httpx transport, used by tests.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str,
        api_url: str = DEFAULT_API_URL,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not token:
            raise ConfigError("GitHub token required to create releases")
        self._owner = owner
        self._repo = repo
        self._repo_url = f"{api_url.rstrip('/')}/repos/{owner}/{repo}"
        self._transport = transport
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": "semrel",
        }

    def __repr__(self) -> str:
        return f"GitHubReleases(owner={self._owner!r}, repo={self._repo!r})"

    def create_release(self, tag: str, *, title: str, body: str) -> str:
        """Create a release for an existing tag.

        Returns:
            The ``html_url`` of the new release (empty if GitHub omits it).

        Raises:
            ForgeError: On a transport error, a non-2xx response or a
                response body that is not JSON.
        """
        payload: dict[str, Any] = {
            "tag_name": tag,
            "name": title,
            "body": body,
            "draft": False,
            "prerelease": False,
        }
        url = f"{self._repo_url}/releases"
        try:
            with httpx.Client(
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise ForgeError(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            raise ForgeError(
                f"GitHub rejected release {tag}: HTTP {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ForgeError(
                f"GitHub returned an unreadable response for release {tag}: {e}",
                status_code=response.status_code,
            ) from e
        html_url = data.get("html_url", "") if isinstance(data, dict) else ""
        log.info("release_created", tag=tag, url=html_url)
        return html_url
