"""Build-leader barrier for parallel CI jobs.

Only one job of a build matrix may release. The barrier asks the CI
environment whether the current job is the leader; non-leaders stop
immediately, while the leader polls its siblings until all of them passed,
one of them failed, or ``max_wait`` seconds elapsed.

This is a convention, not a consensus protocol: it relies on the CI
service's job states being eventually consistent. The poll loop blocks the
calling thread; ``sleep`` and ``clock`` are injectable for tests.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from semrel.ci.environment import JobStatus
from semrel.exceptions import CIEnvironmentError
from semrel.logging import get_logger

if TYPE_CHECKING:
    from semrel.ci.environment import CIEnvironment

log = get_logger("semrel.ci.barrier")


class BarrierDecision(StrEnum):
    NOT_LEADER = "not_leader"
    LEADER_PROCEED = "leader_proceed"
    LEADER_ABORT = "leader_abort"


class BarrierReason(StrEnum):
    SIBLING_FAILED = "sibling_failed"
    TIMEOUT = "timeout"
    ENVIRONMENT_UNAVAILABLE = "environment_unavailable"


@dataclass(frozen=True)
class BarrierOutcome:
    decision: BarrierDecision
    reason: BarrierReason | None = None
    detail: str | None = None

    @classmethod
    def not_leader(cls) -> BarrierOutcome:
        return cls(BarrierDecision.NOT_LEADER)

    @classmethod
    def proceed(cls) -> BarrierOutcome:
        return cls(BarrierDecision.LEADER_PROCEED)

    @classmethod
    def abort(cls, reason: BarrierReason, detail: str | None = None) -> BarrierOutcome:
        return cls(BarrierDecision.LEADER_ABORT, reason, detail)


class BuildBarrier:
    """Blocks the build leader until its sibling jobs are done.

    Args:
        environment: The CI job view, or ``None`` when the CI service is
            not supported (the barrier then aborts with
            ``ENVIRONMENT_UNAVAILABLE``).
        poll_interval: Seconds between status queries.
        max_wait: Overall deadline in seconds.
    """

    def __init__(
        self,
        environment: CIEnvironment | None,
        *,
        poll_interval: float = 5.0,
        max_wait: float = 3600.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._environment = environment
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    def wait(self) -> BarrierOutcome:
        environment = self._environment
        if environment is None:
            return BarrierOutcome.abort(
                BarrierReason.ENVIRONMENT_UNAVAILABLE,
                "CI detected, but the build matrix of this CI service cannot be queried",
            )

        if not environment.is_leader:
            log.info("not_build_leader", job=environment.job_number)
            return BarrierOutcome.not_leader()

        log.info("build_leader_waiting", job=environment.job_number)
        deadline = self._clock() + self._max_wait
        while True:
            try:
                statuses = environment.sibling_statuses()
            except CIEnvironmentError as e:
                return BarrierOutcome.abort(BarrierReason.ENVIRONMENT_UNAVAILABLE, str(e))

            failed = sorted(job for job, status in statuses.items() if status is JobStatus.FAILED)
            if failed:
                return BarrierOutcome.abort(
                    BarrierReason.SIBLING_FAILED, f"failed jobs: {', '.join(failed)}"
                )

            pending = [job for job, status in statuses.items() if status is JobStatus.PENDING]
            if not pending:
                log.info("siblings_succeeded", jobs=len(statuses))
                return BarrierOutcome.proceed()

            if self._clock() >= deadline:
                return BarrierOutcome.abort(
                    BarrierReason.TIMEOUT, f"still pending after {self._max_wait:g}s"
                )

            log.debug("siblings_pending", pending=len(pending))
            self._sleep(self._poll_interval)
