"""cave CLI: Typer-based command-line interface.

Provides the ``cave`` command with subcommands to select, pin, list and run
code_aster versions. All output uses Rich for formatted terminal display.
"""
