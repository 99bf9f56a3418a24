from __future__ import annotations

import typer

from gwops.cli.commands._helpers import exit_with_code
from gwops.cli.context import build_context
from gwops.core.result import Err, Ok
from gwops.output.console import Style


def debug_bundle(
    since: str | None = typer.Option(
        None, "--since", help="journalctl --since value (default from config)"
    ),
    max_journal_lines: int | None = typer.Option(
        None, "--max-journal-lines", min=1, help="Journal lines per unit (default from config)"
    ),
    health_url: str | None = typer.Option(
        None, "--health-url", help="Core health endpoint to query (default from config)"
    ),
    include_mosq_persist: bool = typer.Option(
        False,
        "--include-mosq-persist",
        help="Include the Mosquitto persistence DB (may hold retained payloads, no passwords)",
    ),
) -> None:
    """Collect an offline debug bundle (secrets redacted)."""
    ctx = build_context()
    service = ctx.debug_bundle_service()

    result = service.create(
        since=since,
        max_journal_lines=max_journal_lines,
        health_url=health_url,
        # the flag can only switch persistence on; config may already have it on
        include_mosquitto_persist=True if include_mosq_persist else None,
    )
    match result:
        case Err(e):
            ctx.console.error(e.message)
            if e.hint:
                ctx.console.print(f"hint: {e.hint}", Style.DIM)
            exit_with_code(int(e.code))
        case Ok(path):
            ctx.console.success(f"Debug bundle written: {path}")
