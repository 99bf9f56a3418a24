"""Releases commands - list installed releases and prune old ones."""

from __future__ import annotations

import typer

from gwops.cli.commands._helpers import exit_on_release_error, require_root
from gwops.cli.context import build_context
from gwops.output.console import Style
from gwops.release.prune import DEFAULT_KEEP, apply_prune, plan_prune


def releases() -> None:
    """List installed releases, oldest first."""
    ctx = build_context()
    store = ctx.store()
    status = store.status()

    items = store.list_releases()
    if not items:
        ctx.console.print(f"No releases in {store.layout.releases_dir}", Style.DIM)
        return

    for release in items:
        marks: list[str] = []
        if release.version == status.current.version:
            marks.append("current")
        if release.version == status.previous.version:
            marks.append("previous")
        suffix = f"  [{', '.join(marks)}]" if marks else ""
        when = release.deployed_at or "?"
        ctx.console.print(f"{release.version}  {when}{suffix}")
        if release.artifact:
            ctx.console.print(f"    {release.artifact}", Style.DIM)


def prune(
    keep: int = typer.Option(DEFAULT_KEEP, "--keep", "-k", min=0, help="Releases to keep"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Execute (default is dry-run)"),
) -> None:
    """Delete old releases. Dry-run by default, use -y to execute."""
    ctx = build_context()
    store = ctx.store()
    plan = plan_prune(store, keep)

    if plan.is_empty:
        ctx.console.print("Nothing to prune", Style.DIM)
        return

    if yes:
        require_root(ctx)
        ctx.console.header("EXECUTE")
    else:
        ctx.console.header("DRY-RUN")

    for release in plan.remove:
        ctx.console.print(f"  {release.path}", Style.DIM)
    if plan.protected:
        ctx.console.print(f"protected: {', '.join(plan.protected)}", Style.DIM)

    if not yes:
        ctx.console.print("Use -y to execute", Style.DIM)
        return

    result = apply_prune(store, plan, ctx.console)
    exit_on_release_error(result, ctx)
    ctx.console.success(f"Removed {len(plan.remove)} releases")
