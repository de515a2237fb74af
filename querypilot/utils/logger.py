"""
Logging utility with loguru.
Provides structured logging with optional file rotation.
"""

import sys
from pathlib import Path

from loguru import logger

from querypilot.config.settings import settings, PROJECT_ROOT


def setup_logger():
    """
    Configure loguru logger with console and (optionally) file outputs.
    """
    logger.remove()

    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
    )

    if settings.log_file_enabled:
        log_dir = Path(settings.log_dir)
        if not log_dir.is_absolute():
            log_dir = PROJECT_ROOT / log_dir
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "querypilot.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
        )

    logger.debug("Logger initialized")
    return logger
