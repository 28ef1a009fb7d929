"""CI build-matrix coordination."""

from __future__ import annotations

from semrel.ci.barrier import BarrierDecision, BarrierOutcome, BarrierReason, BuildBarrier
from semrel.ci.environment import (
    CIEnvironment,
    JobStatus,
    TravisEnvironment,
    detect_environment,
    is_ci,
)

__all__ = [
    "BarrierDecision",
    "BarrierOutcome",
    "BarrierReason",
    "BuildBarrier",
    "CIEnvironment",
    "JobStatus",
    "TravisEnvironment",
    "detect_environment",
    "is_ci",
]
