"""
Logging setup for netpolicy.

Library modules log through logging.getLogger(__name__) and never touch the
root logger. Applications (and the CLI) call configure_logging() to attach a
Rich handler to the "netpolicy" logger.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "netpolicy"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(
    level: str | int = "WARNING",
    console: Console | None = None,
) -> logging.Logger:
    """
    Attach a RichHandler to the netpolicy logger.

    Calling this again replaces the handler installed by a previous call
    instead of adding a second one.

    Args:
        level: Level name or number
        console: Rich console to write to (defaults to stderr)

    Returns:
        The configured "netpolicy" logger
    """
    if isinstance(level, str):
        level_name = level.strip().upper()
        if level_name not in LOG_LEVELS:
            msg = f"Unknown log level: {level}"
            raise ValueError(msg)
        level = getattr(logging, level_name)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_netpolicy_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler._netpolicy_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
