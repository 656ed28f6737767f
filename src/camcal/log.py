"""Logging configuration using loguru."""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def configure_logging(level: str = "INFO") -> None:
    """
    Replace loguru's default handler with a single stderr sink.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT, colorize=True)
