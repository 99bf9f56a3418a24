"""Deploy/rollback orchestration: release switching plus service restart."""

from __future__ import annotations

from pathlib import Path

from gwops.core.result import Err, Ok, Result
from gwops.output.console import ConsoleProtocol, Style
from gwops.release.errors import ReleaseError, SupervisorFailed
from gwops.release.model import DeployResult, StoreStatus
from gwops.release.switcher import ReleaseSwitcher
from gwops.services.supervisor import Supervisor


class DeployService:
    """Runs release operations and restarts the supervised unit afterwards.

    A restart failure is reported as SupervisorFailed but never undone: the
    pointers stay where the operation put them and the operator decides
    whether to roll back. Nothing is retried.
    """

    def __init__(
        self,
        *,
        switcher: ReleaseSwitcher,
        supervisor: Supervisor,
        service: str,
        console: ConsoleProtocol,
        journal_lines: int = 100,
    ) -> None:
        self._switcher = switcher
        self._supervisor = supervisor
        self._service = service
        self._console = console
        self._journal_lines = journal_lines

    def deploy(
        self, artifact: Path, version: str, *, restart: bool = True
    ) -> Result[DeployResult, ReleaseError]:
        result = self._switcher.deploy(artifact, version)
        if isinstance(result, Err):
            return result

        restarted = self._maybe_restart(restart, result.value.status)
        if isinstance(restarted, Err):
            return restarted

        self._console.newline()
        self._console.success(f"Deploy complete: version={version}")
        return result

    def switch(self, version: str, *, restart: bool = True) -> Result[StoreStatus, ReleaseError]:
        result = self._switcher.switch(version)
        if isinstance(result, Err):
            return result

        restarted = self._maybe_restart(restart, result.value)
        if isinstance(restarted, Err):
            return restarted

        self._console.success(f"Switch complete: version={version}")
        return result

    def rollback(self, *, restart: bool = True) -> Result[StoreStatus, ReleaseError]:
        result = self._switcher.rollback()
        if isinstance(result, Err):
            return result

        restarted = self._maybe_restart(restart, result.value)
        if isinstance(restarted, Err):
            return restarted

        self._console.success(f"Rollback complete: current -> {result.value.current.describe()}")
        return result

    def _maybe_restart(self, restart: bool, status: StoreStatus) -> Result[None, SupervisorFailed]:
        if not restart:
            self._console.step("Skipping restart (--no-restart).")
            return Ok(None)
        return self.restart(active_version=status.current.version)

    def restart(self, *, active_version: str | None = None) -> Result[None, SupervisorFailed]:
        unit = self._service
        self._console.step(f"Restarting {unit}.service")

        reloaded = self._supervisor.daemon_reload()
        if isinstance(reloaded, Err):
            detail = reloaded.error.detail or str(reloaded.error)
            self._console.warning(f"daemon-reload failed: {detail}")

        restarted = self._supervisor.restart(unit)
        state = self._supervisor.is_active(unit)
        self._show_unit(unit)

        if isinstance(restarted, Err):
            return Err(
                SupervisorFailed(
                    service=unit,
                    reason=restarted.error.detail or str(restarted.error),
                    active_version=active_version,
                )
            )
        if state != "active":
            return Err(
                SupervisorFailed(
                    service=unit,
                    reason=f"unit is '{state}' after restart",
                    active_version=active_version,
                )
            )
        return Ok(None)

    def _show_unit(self, unit: str) -> None:
        self._console.step(f"{unit}.service status:")
        self._console.print(self._supervisor.status(unit).rstrip(), Style.DIM)
        self._console.step(f"{unit}.service log tail:")
        self._console.print(
            self._supervisor.journal(unit, lines=self._journal_lines).rstrip(), Style.DIM
        )
