"""Subprocess helper shared by the git and uv collaborators.

All external tool calls go through :func:`run_command`, which logs the
invocation, applies a timeout and returns a :class:`CommandResult`.
Secrets passed on the command line are masked in the log output.
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from semrel.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

log = get_logger("semrel.process")

DEFAULT_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed.
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
    """

    command: list[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.return_code == 0


def _masked(cmd: Sequence[str], secrets: Sequence[str]) -> str:
    text = " ".join(cmd)
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    secrets: Sequence[str] = (),
) -> CommandResult:
    """Execute ``cmd`` and capture its output.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the command.
        env: Extra environment variables, merged over ``os.environ``.
        timeout: Seconds before the process is killed.
        secrets: Values to mask when the command line is logged.

    Returns:
        The captured :class:`CommandResult`. A non-zero exit code is not
        raised; callers decide which error type it maps to.

    Raises:
        FileNotFoundError: If the executable does not exist.
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
    """
    cmd_str = _masked(cmd, secrets)
    log.debug("run_command", cmd=cmd_str, cwd=str(cwd or "."))

    full_env: dict[str, str] | None = None
    if env:
        full_env = {**os.environ, **env}

    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        log.error("command_timeout", cmd=cmd_str, timeout=timeout)
        raise

    duration = (time.monotonic() - start) * 1000
    if result.returncode != 0:
        log.warning(
            "command_failed",
            cmd=cmd_str,
            return_code=result.returncode,
            stderr=(result.stderr or "")[:500],
        )
    else:
        log.debug("command_ok", cmd=cmd_str, duration=round(duration, 1))

    return CommandResult(
        command=cmd,
        return_code=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        duration=duration,
    )


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "CommandResult",
    "TimeoutExpired",
    "run_command",
]

# Re-exported so callers can handle timeouts without importing subprocess.
TimeoutExpired = subprocess.TimeoutExpired
