"""CI environment detection and build-matrix status.

A release must happen once per build, not once per matrix job. The CI
environment tells the barrier which job it is running in and what state
its sibling jobs are in. Travis CI build matrices are supported through the
Travis API v3; the leader is the job whose matrix index is 1
(``TRAVIS_JOB_NUMBER`` ``"<build>.1"``).
"""

from __future__ import annotations

import os
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import httpx

from semrel.exceptions import CIEnvironmentError
from semrel.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

log = get_logger("semrel.ci.environment")

DEFAULT_TRAVIS_API_URL = "https://api.travis-ci.com"

_PASSED_STATES = frozenset({"passed"})
_FAILED_STATES = frozenset({"failed", "errored", "canceled"})


class JobStatus(StrEnum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


def is_ci(env: Mapping[str, str] | None = None) -> bool:
    """Whether the process runs on a CI service (the ``CI`` variable is set)."""
    env = os.environ if env is None else env
    return "CI" in env


def is_pull_request(env: Mapping[str, str] | None = None) -> bool:
    """Whether the CI build was triggered by a pull request."""
    env = os.environ if env is None else env
    travis_pr = env.get("TRAVIS_PULL_REQUEST")
    if travis_pr is not None and travis_pr != "false":
        return True
    return env.get("GITHUB_EVENT_NAME") in {"pull_request", "pull_request_target"}


def ci_branch(env: Mapping[str, str] | None = None) -> str | None:
    """Branch name reported by the CI service, if any."""
    env = os.environ if env is None else env
    return env.get("TRAVIS_BRANCH") or env.get("GITHUB_REF_NAME") or None


class CIEnvironment(Protocol):
    """What the build barrier needs to know about the running job."""

    @property
    def job_number(self) -> str: ...

    @property
    def is_leader(self) -> bool: ...

    def sibling_statuses(self) -> dict[str, JobStatus]:
        """Map each sibling job to its current status.

        Raises:
            CIEnvironmentError: If the CI service cannot be queried.
        """
        ...


class TravisEnvironment:
    """A job inside a Travis CI build matrix."""

    def __init__(
        self,
        build_id: str,
        job_number: str,
        *,
        api_url: str = DEFAULT_TRAVIS_API_URL,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.build_id = build_id
        self._job_number = job_number
        self._url = f"{api_url.rstrip('/')}/build/{build_id}/jobs"
        self._transport = transport
        self._headers = {"Travis-API-Version": "3", "User-Agent": "semrel"}
        if token:
            self._headers["Authorization"] = f"token {token}"

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str],
        *,
        api_url: str = DEFAULT_TRAVIS_API_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> TravisEnvironment | None:
        build_id = env.get("TRAVIS_BUILD_ID")
        job_number = env.get("TRAVIS_JOB_NUMBER")
        if not build_id or not job_number:
            return None
        return cls(
            build_id,
            job_number,
            api_url=api_url,
            token=env.get("TRAVIS_API_TOKEN"),
            transport=transport,
        )

    @property
    def job_number(self) -> str:
        return self._job_number

    @property
    def is_leader(self) -> bool:
        _, _, index = self._job_number.rpartition(".")
        return index == "1"

    def sibling_statuses(self) -> dict[str, JobStatus]:
        try:
            with httpx.Client(headers=self._headers, transport=self._transport) as client:
                response = client.get(self._url)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CIEnvironmentError(f"Could not query Travis build {self.build_id}: {e}") from e

        jobs = payload.get("jobs") if isinstance(payload, dict) else None
        if not isinstance(jobs, list):
            raise CIEnvironmentError(f"Unexpected Travis payload for build {self.build_id}")

        statuses: dict[str, JobStatus] = {}
        for job in jobs:
            if not isinstance(job, dict):
                raise CIEnvironmentError(
                    f"Unexpected job entry in Travis build {self.build_id}: {job!r}"
                )
            number = str(job.get("number", ""))
            if number == self._job_number or job.get("allow_failure"):
                continue
            statuses[number] = _travis_status(job.get("state"))
        return statuses


def _travis_status(state: object) -> JobStatus:
    if state in _PASSED_STATES:
        return JobStatus.PASSED
    if state in _FAILED_STATES:
        return JobStatus.FAILED
    return JobStatus.PENDING


def detect_environment(
    env: Mapping[str, str] | None = None,
    *,
    travis_api_url: str = DEFAULT_TRAVIS_API_URL,
    transport: httpx.BaseTransport | None = None,
) -> CIEnvironment | None:
    """Return the build-matrix view for the current CI service, if supported."""
    env = os.environ if env is None else env
    if env.get("TRAVIS") == "true" or "TRAVIS_JOB_NUMBER" in env:
        environment = TravisEnvironment.from_env(env, api_url=travis_api_url, transport=transport)
        if environment is not None:
            log.debug("ci_detected", provider="travis", job=environment.job_number)
        return environment
    log.debug("ci_not_supported")
    return None


__all__ = [
    "CIEnvironment",
    "JobStatus",
    "TravisEnvironment",
    "ci_branch",
    "detect_environment",
    "is_ci",
    "is_pull_request",
]
