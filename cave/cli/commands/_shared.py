"""Helpers shared by the CLI commands: consoles, wiring and error exits."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.markup import escape

from cave import __version__
from cave.config import CaveSettings
from cave.core.errors import CaveError
from cave.core.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print a :class:`CaveError` on stderr and exit with its code."""
    try:
        yield
    except CaveError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", markup=True, highlight=False)
        raise typer.Exit(code=exc.exit_code) from exc


def build_orchestrator(settings: CaveSettings | None = None) -> Orchestrator:
    """Create the orchestrator for this invocation and run the update check."""
    orchestrator = Orchestrator(settings)
    latest = orchestrator.check_for_update(__version__)
    if latest:
        err_console.print(
            f"[yellow]A new cave release is available: {latest} (installed: {__version__}).[/yellow]"
        )
    return orchestrator
