"""Service supervisor access (systemd + journald).

The release code never talks to systemd directly; it goes through the
Supervisor protocol so tests can substitute a fake.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from gwops.core.result import Err, Ok, Result
from gwops.platform.process import ProcessError, run

__all__ = ["Runner", "Supervisor", "SystemdSupervisor", "default_runner"]

Runner = Callable[[list[str]], Result[str, ProcessError]]


class Supervisor(Protocol):
    def daemon_reload(self) -> Result[None, ProcessError]: ...

    def restart(self, unit: str) -> Result[None, ProcessError]: ...

    def is_active(self, unit: str) -> str:
        """Return the unit's active state ("active", "failed", ...)."""
        ...

    def is_enabled(self, unit: str) -> str: ...

    def status(self, unit: str) -> str: ...

    def journal(
        self,
        unit: str | None,
        *,
        lines: int,
        since: str | None = None,
        priority: str | None = None,
        boot: bool = False,
    ) -> str:
        """Last `lines` journal lines; boot=True limits them to the current boot."""
        ...


def default_runner(cmd: list[str]) -> Result[str, ProcessError]:
    return run(cmd, cwd=Path("/"))


class SystemdSupervisor:
    """Supervisor backed by systemctl and journalctl."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._run = runner or default_runner

    def daemon_reload(self) -> Result[None, ProcessError]:
        result = self._run(["systemctl", "daemon-reload"])
        if isinstance(result, Err):
            return result
        return Ok(None)

    def restart(self, unit: str) -> Result[None, ProcessError]:
        result = self._run(["systemctl", "restart", unit])
        if isinstance(result, Err):
            return result
        return Ok(None)

    def is_active(self, unit: str) -> str:
        # is-active exits non-zero for anything but "active" and still
        # prints the state on stdout.
        match self._run(["systemctl", "is-active", unit]):
            case Ok(out):
                return out.strip() or "unknown"
            case Err(e):
                return e.stdout.strip() or "unknown"

    def is_enabled(self, unit: str) -> str:
        match self._run(["systemctl", "is-enabled", unit]):
            case Ok(out):
                return out.strip() or "unknown"
            case Err(e):
                return e.stdout.strip() or e.detail or "unknown"

    def status(self, unit: str) -> str:
        # status exits 3 for stopped units; the text is what matters.
        match self._run(["systemctl", "--no-pager", "--full", "status", unit]):
            case Ok(out):
                return out
            case Err(e):
                return e.stdout or e.detail

    def journal(
        self,
        unit: str | None,
        *,
        lines: int,
        since: str | None = None,
        priority: str | None = None,
        boot: bool = False,
    ) -> str:
        cmd = ["journalctl", "--no-pager", "-n", str(lines)]
        if boot:
            cmd.append("-b")
        if unit is not None:
            cmd += ["-u", unit]
        if since:
            cmd += ["--since", since]
        if priority:
            cmd += ["-p", priority]
        match self._run(cmd):
            case Ok(out):
                return out
            case Err(e):
                return f"journalctl failed: {e.detail or e}"
