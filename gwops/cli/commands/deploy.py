"""Release commands - deploy, switch and rollback."""

from __future__ import annotations

from pathlib import Path

import typer

from gwops.cli.commands._helpers import exit_on_release_error, require_root
from gwops.cli.context import CLIContext, build_context


def _restart(ctx: CLIContext, no_restart: bool) -> bool:
    return ctx.config.release.restart and not no_restart


def deploy(
    tar: Path = typer.Option(
        ...,
        "--tar",
        "--artifact",
        help="Release archive (.tar.gz, .tgz, .tar.xz or .zip)",
    ),
    version: str = typer.Option(..., "--version", help="Release label (e.g. 2026-01-15_1)"),
    no_restart: bool = typer.Option(False, "--no-restart", help="Do not restart the service"),
) -> None:
    """Install a release archive and make it current."""
    ctx = build_context()
    require_root(ctx)

    artifact = tar.expanduser()
    ctx.console.step(f"Deploying {artifact.name} as {version}")
    result = ctx.deploy_service().deploy(artifact, version, restart=_restart(ctx, no_restart))
    exit_on_release_error(result, ctx)


def switch(
    version: str = typer.Argument(..., help="Installed release to activate"),
    no_restart: bool = typer.Option(False, "--no-restart", help="Do not restart the service"),
) -> None:
    """Point current at an already installed release."""
    ctx = build_context()
    require_root(ctx)

    result = ctx.deploy_service().switch(version, restart=_restart(ctx, no_restart))
    exit_on_release_error(result, ctx)


def rollback(
    no_restart: bool = typer.Option(False, "--no-restart", help="Do not restart the service"),
) -> None:
    """Point current back at the previous release."""
    ctx = build_context()
    require_root(ctx)

    result = ctx.deploy_service().rollback(restart=_restart(ctx, no_restart))
    exit_on_release_error(result, ctx)
