"""Logging setup for the registry."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Replace loguru's default handler with the registry's sinks."""
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else settings.LOG_FILE

    logger.remove()
    logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            encoding="utf-8",
        )


__all__ = ["logger", "setup_logging"]
