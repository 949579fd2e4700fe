"""
Loguru setup.
"""

import sys

from loguru import logger

from localmart.core.config import settings


def setup_logging() -> None:
    """Replace the default loguru sink with one honouring ``LOG_LEVEL``."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        backtrace=settings.debug,
        diagnose=settings.debug,
    )
