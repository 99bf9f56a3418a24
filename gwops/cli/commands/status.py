"""Status command - release pointers, services, database and disk at a glance."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from gwops.cli.context import build_context
from gwops.release.model import PointerState
from gwops.services.status import StatusReport, collect_status, human_size

_console = Console(highlight=False)

# Above this, sqlite locks and failed backups start showing up.
DISK_WARN_PCT = 85


def _render_pointer(pointer: PointerState) -> Text:
    text = Text()
    text.append(f"{pointer.name:<9}", style="bold")
    text.append("-> ")
    if not pointer.is_set:
        text.append("(missing)", style="red")
    elif not pointer.target_exists:
        text.append(f"{pointer.target} (target missing)", style="red")
    else:
        text.append(pointer.version or str(pointer.target), style="green")
    return text


def _render(report: StatusReport) -> Text:
    lines = Text()
    lines.append_text(_render_pointer(report.store.current))
    lines.append("\n")
    lines.append_text(_render_pointer(report.store.previous))

    lines.append("\n\n")
    for i, svc in enumerate(report.services):
        if i > 0:
            lines.append("\n")
        lines.append(f"{svc.unit:<12}")
        lines.append(svc.state, style="green" if svc.active else "red")

    lines.append("\n\n")
    lines.append(f"{'db':<12}")
    lines.append(str(report.db_path), style="dim")
    lines.append("  ")
    if report.db_exists:
        lines.append("present", style="green")
    else:
        lines.append("missing", style="yellow")

    lines.append("\n")
    lines.append(f"{'disk':<12}")
    disk = report.disk
    if disk is None:
        lines.append("unavailable", style="yellow")
    else:
        pct = disk.used_pct
        lines.append(f"{pct}% used", style="red" if pct > DISK_WARN_PCT else "green")
        lines.append(f"  ({human_size(disk.free)} free on {disk.path})", style="dim")
    return lines


def _as_dict(report: StatusReport) -> dict[str, object]:
    def pointer(p: PointerState) -> dict[str, object]:
        return {
            "target": str(p.target) if p.target is not None else None,
            "version": p.version,
            "target_exists": p.target_exists,
        }

    disk = report.disk
    return {
        "current": pointer(report.store.current),
        "previous": pointer(report.store.previous),
        "services": {svc.unit: svc.state for svc in report.services},
        "db": {"path": str(report.db_path), "exists": report.db_exists},
        "disk": None
        if disk is None
        else {
            "path": str(disk.path),
            "total": disk.total,
            "used": disk.used,
            "free": disk.free,
            "used_pct": disk.used_pct,
        },
    }


def status(
    as_json: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
) -> None:
    """Show release pointers, service states, database and disk usage."""
    ctx = build_context()
    report = collect_status(ctx.config, ctx.store(), ctx.supervisor)

    if as_json:
        typer.echo(json.dumps(_as_dict(report), indent=2))
        return

    _console.print(
        Panel(
            _render(report),
            title=f"[bold]{ctx.config.service.name}[/bold] [dim]{ctx.layout.base_dir}[/dim]",
            title_align="left",
            border_style="dim",
            padding=(0, 1),
        )
    )
