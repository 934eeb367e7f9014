"""``cave run``: run code_aster with the resolved version.

Everything after ``--`` is handed to ``run_aster`` inside the container
unchanged; a trailing ``.export`` file must exist in the current directory.
"""

from __future__ import annotations

import typer

from cave.cli.commands import _shared


def run_cmd(
    args: list[str] = typer.Argument(None, metavar="[ARGS]...", help="Arguments for run_aster, usually an .export file."),
) -> None:
    """Run code_aster in a fresh container and exit with its exit code."""
    with _shared.exit_on_error():
        with _shared.build_orchestrator() as orchestrator:
            code = orchestrator.run(list(args or []))
    if code != 0:
        raise typer.Exit(code=code)
