from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {name}:{line} - {message}"


def configure_logging(debug: bool = False) -> int:
    """Route loguru output to stderr at DEBUG when ``debug`` is set, INFO otherwise.

    Returns the id of the installed sink.
    """
    logger.remove()
    return logger.add(
        sys.stderr,
        level="DEBUG" if debug else "INFO",
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
