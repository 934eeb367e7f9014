"""``cave list`` and ``cave available``: show local and published versions."""

from __future__ import annotations

import typer
from rich.table import Table

from cave.cli.commands import _shared

PER_LINE = 6
COLUMN_WIDTH = 12


def list_cmd(
    prefix: str = typer.Argument("", help="Only show versions starting with this, e.g. 16."),
) -> None:
    """List installed code_aster versions."""
    with _shared.exit_on_error():
        with _shared.build_orchestrator() as orchestrator:
            versions = orchestrator.local_versions(prefix)

    if not versions:
        _shared.console.print("[dim]No code_aster versions installed.[/dim]")
        return
    for start in range(0, len(versions), PER_LINE):
        chunk = versions[start : start + PER_LINE]
        line = "".join(f"{v:<{COLUMN_WIDTH}}" for v in chunk)
        _shared.console.print(f"  {line.rstrip()}", highlight=False)


def available_cmd(
    prefix: str = typer.Argument("", help="Only show versions starting with this, e.g. 17."),
) -> None:
    """List code_aster versions published on Docker Hub."""
    with _shared.exit_on_error():
        with _shared.build_orchestrator() as orchestrator:
            versions = orchestrator.remote_versions(prefix)

    if not versions:
        _shared.console.print("No code_aster versions found on Docker Hub.")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Tag")
    table.add_column("Date")
    table.add_column("Alias")
    for item in versions:
        date = item.published_at.strftime("%Y-%m-%d %Hh") if item.published_at else "unknown"
        alias = item.alias.value if item.alias else ""
        style = "bold blue" if item.installed else None
        table.add_row(item.tag, date, alias, style=style)
    _shared.console.print(table)
