"""Logging setup for the cave CLI.

Modules log through ``logging.getLogger(__name__)``; this installs a single
Rich handler on stderr so warnings and debug output never mix with solver
output on stdout.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(*, level: str = "INFO") -> None:
    """Configure root logging once per process; repeated calls replace the handler."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=level.upper() == "DEBUG",
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers.clear()
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
