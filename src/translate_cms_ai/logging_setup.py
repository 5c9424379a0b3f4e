"""
Logging setup for translate-cms-ai.

Console output goes through rich; a rotating file keeps the full history.
The per-job audit trail lives in the database processing log.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from translate_cms_ai.config import LoggingConfig

_HANDLER_MARKER = "_translate_cms_handler"


def setup_logging(config: LoggingConfig, console: Console | None = None) -> logging.Logger:
    """
    Configure the package logger from settings.

    Safe to call more than once; handlers installed by a previous call are
    replaced.

    Args:
        config: Logging section of the settings.
        console: Console to render to. Defaults to stderr.

    Returns:
        The configured ``translate_cms_ai`` logger.
    """
    logger = logging.getLogger("translate_cms_ai")
    logger.setLevel(config.level.upper())

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    setattr(rich_handler, _HANDLER_MARKER, True)
    logger.addHandler(rich_handler)

    if config.file:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
