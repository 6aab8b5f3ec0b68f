"""Logging setup utilities for keyscreen.

Configures the ``keyscreen`` logger hierarchy from the logging section
of the settings.
"""

from __future__ import annotations

import logging
import sys

from keyscreen.config.settings import LoggingConfig

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(config: LoggingConfig | None = None, verbose: bool = False) -> None:
    """Configure logging for the keyscreen application.

    Attaches a stderr handler, plus a file handler when ``config.file``
    is set, to the ``keyscreen`` logger. Calling it again replaces the
    handlers instead of stacking duplicates.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
        verbose: Force DEBUG level regardless of ``config.level``.
    """
    if config is None:
        config = LoggingConfig()
    level_name = "DEBUG" if verbose else config.level.upper()

    app_logger = logging.getLogger("keyscreen")
    app_logger.setLevel(getattr(logging, level_name, logging.INFO))
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger.info("Logging initialized at %s level", level_name)
