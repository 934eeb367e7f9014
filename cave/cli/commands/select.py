"""``cave use`` and ``cave pin``: choose the code_aster version to run.

``use`` sets the global default; ``pin`` overrides it for the current
directory. Both accept ``stable``, ``testing`` or an explicit version such as
``17.2.24``, and offer to download a version that is published but not yet
installed.
"""

from __future__ import annotations

import typer

from cave.cli.commands import _shared
from cave.core.orchestrator import Scope


def _select(version: str, scope: Scope, assume_yes: bool) -> None:
    def confirm(concrete: str) -> bool:
        if assume_yes:
            return True
        return typer.confirm(f"Version '{concrete}' not installed. Download it?", default=False)

    with _shared.exit_on_error():
        with _shared.build_orchestrator() as orchestrator:
            concrete = orchestrator.select(version, scope, confirm)

    where = "globally" if scope is Scope.GLOBAL else "for this directory"
    shown = version if version == concrete else f"{version} ({concrete})"
    _shared.console.print(f"[green]Using code_aster {shown} {where}.[/green]")


def use_cmd(
    version: str = typer.Argument(..., help="stable, testing or a version like 17.2.24."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Download without asking."),
) -> None:
    """Set the default code_aster version."""
    _select(version, Scope.GLOBAL, yes)


def pin_cmd(
    version: str = typer.Argument(..., help="stable, testing or a version like 17.2.24."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Download without asking."),
) -> None:
    """Pin the code_aster version used in the current directory."""
    _select(version, Scope.PROJECT, yes)
