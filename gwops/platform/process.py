"""Running systemctl/journalctl and friends.

`run` never raises for the usual ways an external tool fails on a gateway
(non-zero exit, hung journalctl, binary not installed in a minimal image):
each of them comes back as Err(ProcessError) with whatever output was
captured, so callers can still show it to the operator.

    match run(["systemctl", "is-active", "core"]):
        case Ok(stdout):
            state = stdout.strip()
        case Err(error):
            state = error.stdout.strip() or "unknown"
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from gwops.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

DEFAULT_TIMEOUT = 60.0

# returncode used when the process never produced one
NO_EXIT = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that did not exit 0.

    returncode is NO_EXIT (-1) when the command timed out or could not be
    started at all; stderr then carries the reason.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3]) + (" ..." if len(self.command) > 3 else "")
        return f"{shown} failed (exit {self.returncode})"

    @property
    def detail(self) -> str:
        """Most useful output for the operator: stderr, else stdout."""
        return (self.stderr or self.stdout).strip()


def _failed(cmd: list[str], returncode: int, stdout: str, stderr: str) -> Err[ProcessError]:
    return Err(ProcessError(tuple(cmd), returncode, stdout, stderr))


def run(
    cmd: list[str],
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Result[str, ProcessError]:
    """Run cmd to completion and return its stdout.

    cwd defaults to the caller's directory and env to the caller's
    environment. timeout=None waits forever.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=None if cwd is None else str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return _failed(cmd, NO_EXIT, partial, f"Command timed out after {timeout}s")
    except OSError as e:
        return _failed(cmd, NO_EXIT, "", str(e))

    if proc.returncode != 0:
        return _failed(cmd, proc.returncode, proc.stdout, proc.stderr)
    return Ok(proc.stdout)
