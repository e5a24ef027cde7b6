"""Logging setup for the EcoGrader CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | int = logging.INFO, console: Console | None = None) -> None:
    """Route standard logging through rich.

    Args:
        level: Logging level name or number.
        console: Console to render to (stderr by default).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # The openai SDK logs every HTTP request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
