"""
Process-wide logging configuration.
"""

import logging

from rich.logging import RichHandler


def configure_logging(level_name: str = "INFO") -> None:
    """Route the standard logging tree through rich."""
    resolved = getattr(logging, level_name.upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(
        level=resolved,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
