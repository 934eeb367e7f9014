"""``cave config``: change a global preference."""

from __future__ import annotations

import typer

from cave.cli.commands import _shared
from cave.models.config import ConfigOption


def config_cmd(
    option: ConfigOption = typer.Argument(..., help="Preference to change."),
) -> None:
    """Enable or disable auto update checks and usage tracking."""
    with _shared.exit_on_error():
        with _shared.build_orchestrator() as orchestrator:
            config = orchestrator.configure(option)

    _shared.console.print(
        f"[green]{option.value}[/green]: "
        f"auto update {'on' if config.auto_update_enabled else 'off'}, "
        f"usage tracking {'on' if config.telemetry_enabled else 'off'}."
    )
