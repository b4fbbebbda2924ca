"""Logging configuration helpers."""
from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import log_level_from_env

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | {message}"
)


def configure_logging(level: Optional[str] = None) -> str:
    """Route loguru output to stderr and return the effective level.

    ``level`` wins over ``PHOTOSPHERE_LOG_LEVEL``; INFO is used when neither is set.
    Stdout stays free for command output such as saved file paths.
    """
    effective = (level or log_level_from_env()).upper()
    logger.remove()
    logger.add(sink=sys.stderr, level=effective, format=LOG_FORMAT)
    return effective
