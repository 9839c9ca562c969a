"""Logging setup for the batch migration tool."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_COMPONENT = 'cli'

CONSOLE_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{extra[component]}</cyan> | '
    '<level>{message}</level>'
)

FILE_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss} | '
    '{level: <8} | '
    '{extra[component]} | '
    '{name}:{function}:{line} | '
    '{message}'
)


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Components bind a ``component`` field; records logged without one are
    attributed to the CLI.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        log_format: Optional custom console log format
    """
    logger.remove()
    logger.configure(extra={'component': DEFAULT_COMPONENT})

    logger.add(
        sys.stderr,
        format=log_format or CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=level == 'DEBUG',
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.debug(f'Log file: {log_file}')
