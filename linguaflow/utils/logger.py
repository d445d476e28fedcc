"""Logging setup shared by the library and entry scripts."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str = "linguaflow", level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger with a single stream handler.

    Safe to call repeatedly: the handler is attached only once.

    Args:
        name: Logger name (package root by default)
        level: Level name; falls back to Config.LOG_LEVEL

    Returns:
        Configured logger
    """
    from ..config import Config

    logger = logging.getLogger(name)
    logger.setLevel((level or Config.LOG_LEVEL).upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
