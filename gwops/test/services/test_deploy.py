from __future__ import annotations

from pathlib import Path

import pytest

from gwops.core.layout import ReleaseLayout
from gwops.core.result import Err, Ok
from gwops.output.console import MockConsole
from gwops.release.errors import NoPreviousRelease, SupervisorFailed, VersionAlreadyExists
from gwops.release.store import ReleaseStore
from gwops.release.switcher import ReleaseSwitcher
from gwops.services.deploy import DeployService

from ..release._archives import make_release
from ._fakes import FakeSupervisor


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def service(tmp_path: Path, console: MockConsole, supervisor: FakeSupervisor) -> DeployService:
    store = ReleaseStore(ReleaseLayout(tmp_path / "core"))
    switcher = ReleaseSwitcher(store=store, entry_point="bin/core", console=console)
    return DeployService(
        switcher=switcher,
        supervisor=supervisor,
        service="core",
        console=console,
        journal_lines=20,
    )


def test_deploy_restarts_service(
    service: DeployService, supervisor: FakeSupervisor, console: MockConsole, tmp_path: Path
) -> None:
    result = service.deploy(make_release(tmp_path / "r.tgz"), "1.0")

    assert isinstance(result, Ok)
    assert ("daemon-reload",) in supervisor.calls
    assert ("restart", "core") in supervisor.calls
    assert ("journal", "core", "20", "-", "-") in supervisor.calls
    assert console.find("Deploy complete: version=1.0")


def test_no_restart(
    service: DeployService, supervisor: FakeSupervisor, console: MockConsole, tmp_path: Path
) -> None:
    result = service.deploy(make_release(tmp_path / "r.tgz"), "1.0", restart=False)

    assert isinstance(result, Ok)
    assert supervisor.calls == []
    assert console.find("Skipping restart (--no-restart).")


def test_restart_failure_keeps_new_release(
    service: DeployService, supervisor: FakeSupervisor, tmp_path: Path
) -> None:
    supervisor.restart_fails = True

    result = service.deploy(make_release(tmp_path / "r.tgz"), "1.0")

    assert isinstance(result, Err)
    assert isinstance(result.error, SupervisorFailed)
    assert result.error.active_version == "1.0"
    layout = ReleaseLayout(tmp_path / "core")
    assert layout.current_link.resolve() == layout.release_dir("1.0").resolve()


def test_unit_not_active_after_restart(
    service: DeployService, supervisor: FakeSupervisor, tmp_path: Path
) -> None:
    supervisor.states["core"] = "activating"

    result = service.deploy(make_release(tmp_path / "r.tgz"), "1.0")

    assert isinstance(result, Err)
    assert isinstance(result.error, SupervisorFailed)
    assert "activating" in result.error.reason


def test_reload_failure_is_only_a_warning(
    service: DeployService, supervisor: FakeSupervisor, console: MockConsole, tmp_path: Path
) -> None:
    supervisor.reload_fails = True

    result = service.deploy(make_release(tmp_path / "r.tgz"), "1.0")

    assert isinstance(result, Ok)
    assert console.find("daemon-reload failed: bus error")


def test_release_error_skips_restart(
    service: DeployService, supervisor: FakeSupervisor, tmp_path: Path
) -> None:
    artifact = make_release(tmp_path / "r.tgz")
    service.deploy(artifact, "1.0")
    supervisor.calls.clear()

    result = service.deploy(artifact, "1.0")

    assert isinstance(result, Err)
    assert isinstance(result.error, VersionAlreadyExists)
    assert supervisor.calls == []


def test_rollback_and_switch(
    service: DeployService, console: MockConsole, tmp_path: Path
) -> None:
    service.deploy(make_release(tmp_path / "a.tgz"), "1.0")
    service.deploy(make_release(tmp_path / "b.tgz"), "1.1")

    rolled = service.rollback()
    assert isinstance(rolled, Ok)
    assert rolled.value.current.version == "1.0"
    assert console.find("Rollback complete")

    switched = service.switch("1.1", restart=False)
    assert isinstance(switched, Ok)
    assert switched.value.current.version == "1.1"


def test_rollback_without_previous(service: DeployService, supervisor: FakeSupervisor) -> None:
    result = service.rollback()

    assert isinstance(result, Err)
    assert isinstance(result.error, NoPreviousRelease)
    assert supervisor.calls == []
