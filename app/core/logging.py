"""Logger setup for the paysettle service.

``LOG_FORMAT`` and ``DATE_FORMAT`` are shared with the dictConfig in
``app.core.logging_config`` so uvicorn's access log and our own lines look
the same on stdout.
"""

import logging
import sys

ROOT_LOGGER = "paysettle"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Set the level of the ``paysettle`` logger and make sure it has a handler.

    Safe to call after ``dictConfig`` and safe to call more than once: a
    stdout handler is only attached when none exists yet.

    Args:
        level: Level name such as DEBUG or WARNING. Unknown names fall back to INFO.

    Returns:
        The ``paysettle`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger for a module, e.g. ``get_logger(__name__)`` in the sweeper
    gives ``paysettle.app.services.settlement.sweeper``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
