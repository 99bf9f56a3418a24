from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import typer

from gwops.core.config import Config, default_config_path, load_config_or_default
from gwops.core.errors import ErrorCode
from gwops.core.layout import ReleaseLayout
from gwops.core.result import Err
from gwops.output.console import ConsoleProtocol, RichConsole
from gwops.platform.http import HttpClient, UrllibHttpClient
from gwops.release.store import ReleaseStore
from gwops.release.switcher import ReleaseSwitcher
from gwops.services.debug_bundle import DebugBundleService
from gwops.services.deploy import DeployService
from gwops.services.supervisor import Runner, Supervisor, SystemdSupervisor, default_runner


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    config_path: Path
    console: ConsoleProtocol
    supervisor: Supervisor
    runner: Runner = default_runner
    http: HttpClient = field(default_factory=UrllibHttpClient)

    @property
    def layout(self) -> ReleaseLayout:
        return ReleaseLayout(self.config.release.base_dir)

    def store(self) -> ReleaseStore:
        return ReleaseStore(self.layout)

    def switcher(self) -> ReleaseSwitcher:
        release = self.config.release
        return ReleaseSwitcher(
            store=self.store(),
            entry_point=release.entry_point,
            console=self.console,
            owner=release.owner,
            group=release.group,
        )

    def deploy_service(self) -> DeployService:
        return DeployService(
            switcher=self.switcher(),
            supervisor=self.supervisor,
            service=self.config.service.name,
            console=self.console,
            journal_lines=self.config.debug.journal_lines,
        )

    def debug_bundle_service(self) -> DebugBundleService:
        return DebugBundleService(
            config=self.config,
            config_path=self.config_path,
            store=self.store(),
            supervisor=self.supervisor,
            console=self.console,
            runner=self.runner,
            http=self.http,
        )


def build_context() -> CLIContext:
    config_path = default_config_path()
    config_result = load_config_or_default(config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        config=config_result.value,
        config_path=config_path,
        console=RichConsole(),
        supervisor=SystemdSupervisor(),
    )
