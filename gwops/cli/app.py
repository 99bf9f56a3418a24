from __future__ import annotations

import os
from pathlib import Path

import typer

from gwops import __version__
from gwops.cli.commands._helpers import SKIP_ROOT_CHECK_ENV
from gwops.cli.commands.debug import debug_bundle
from gwops.cli.commands.deploy import deploy, rollback, switch
from gwops.cli.commands.releases import prune, releases
from gwops.cli.commands.status import status
from gwops.core.config import CONFIG_ENV_VAR
from gwops.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(deploy)
app.command()(switch)
app.command()(rollback)
app.command()(status)
app.command()(releases)
app.command()(prune)
app.command("debug-bundle")(debug_bundle)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help=f"Config file (default: ${CONFIG_ENV_VAR} or /etc/gwops/gwops.toml)",
    ),
    no_root_check: bool = typer.Option(
        False, "--no-root-check", help="Allow mutating commands without root"
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' is not a file", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        os.environ[CONFIG_ENV_VAR] = str(path)

    if no_root_check:
        os.environ[SKIP_ROOT_CHECK_ENV] = "1"

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


def main() -> None:
    app()
