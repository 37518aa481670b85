"""
Logging configuration for the workflow timeline tools.

Library modules only create module loggers; the CLI calls setup_logging().
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "workflow_timeline"


def setup_logging(level: str | None = None) -> None:
    """
    Configure the package logger with a stderr handler.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...). Defaults to WARNING.
    """
    log_level = (level or "WARNING").upper()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, log_level, logging.WARNING))

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
