# meetslot/core/logging.py
from __future__ import annotations

import logging

from meetslot.core.config import get_settings

LOGGER_NAME = "meetslot"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Calling this more than once only updates the level.
    """
    if level is None:
        level = get_settings().LOG_LEVEL
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(getattr(h, "_meetslot_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._meetslot_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
