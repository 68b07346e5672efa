"""Logging setup shared by the CLI and the MCP server.

Log output always goes to stderr: stdout carries the MCP stdio transport.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "concept2_mcp"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "none") -> logging.Logger:
    """Configure the package logger.

    Args:
        level: One of debug, info, warning, error or none. ``none`` silences
            the package entirely.

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_concept2_handler", False):
            logger.removeHandler(handler)

    logger.propagate = False
    level_name = level.lower()
    if level_name == "none":
        logger.setLevel(logging.CRITICAL + 1)
        return logger

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler._concept2_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(_LEVELS.get(level_name, logging.WARNING))
    return logger
