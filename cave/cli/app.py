"""Main Typer application: imports and registers all CLI commands.

Entry point: ``cave`` (configured via pyproject.toml scripts).

Commands: use, pin, run, list, available, config.
"""

from __future__ import annotations

import typer

from cave import __version__
from cave.cli.commands.config_cmd import config_cmd
from cave.cli.commands.run import run_cmd
from cave.cli.commands.select import pin_cmd, use_cmd
from cave.cli.commands.versions import available_cmd, list_cmd
from cave.config import CaveSettings
from cave.observability import configure_logging

app = typer.Typer(
    name="cave",
    help="cave: select, pin and run code_aster versions in Docker.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cave {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show the cave version and exit.",
    ),
) -> None:
    """Select, pin and run code_aster versions."""
    configure_logging(level=CaveSettings().effective_log_level)


# Register subcommands
app.command(name="use", help="Define the default version.")(use_cmd)
app.command(name="pin", help="Define the version for the current directory.")(pin_cmd)
app.command(
    name="run",
    help="Run code_aster: cave run -- [ARGS]",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(run_cmd)
app.command(name="list", help="List downloaded versions.")(list_cmd)
app.command(name="available", help="List versions available on Docker Hub.")(available_cmd)
app.command(name="config", help="Configure cave.")(config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
