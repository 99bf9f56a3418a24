"""Shared helpers for CLI commands."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from gwops.core.errors import ErrorCode
from gwops.core.result import Err, Result
from gwops.output.errors import print_release_error, release_error_exit_code
from gwops.release.errors import ReleaseError

if TYPE_CHECKING:
    from gwops.cli.context import CLIContext

SKIP_ROOT_CHECK_ENV = "GWOPS_SKIP_ROOT_CHECK"

T = TypeVar("T")


def require_root(ctx: CLIContext) -> None:
    """Exit unless running as root (or the check was explicitly disabled)."""
    if os.environ.get(SKIP_ROOT_CHECK_ENV) == "1":
        return
    if os.geteuid() != 0:
        ctx.console.error("Please run as root (use sudo).")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))


def exit_on_release_error(result: Result[T, ReleaseError], ctx: CLIContext) -> None:
    """Print the error and exit with its specific code if result is Err.

    Replaces the repeated pattern:
        match result:
            case Err(e):
                print_release_error(e, ctx.console)
                raise typer.Exit(code=release_error_exit_code(e))
            case Ok(_):
                pass
    """
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        raise typer.Exit(code=release_error_exit_code(result.error))


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)
