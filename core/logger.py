"""Logging helpers for the application.

Provides a `get_logger` factory that attaches a stream handler and a rotating
file handler so every pipeline stage logs in the same format.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from core.config import get_settings

_settings = get_settings()

LOG_DIR = _settings.LOG_DIR or os.path.join(os.path.dirname(__file__), "..", "logs")
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR, exist_ok=True)

LOG_FILE = os.path.join(LOG_DIR, "meal_plans.log")

_formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

_stream_handler = logging.StreamHandler()
_stream_handler.setFormatter(_formatter)

_file_handler = RotatingFileHandler(LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
_file_handler.setFormatter(_formatter)


def get_logger(name: str = __name__, level: str = None) -> logging.Logger:
    """Return a logger wired to the shared stream and rotating file handlers.

    Handlers are only attached once per logger name, so modules may call this
    at import time without duplicating output.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level or _settings.LOG_LEVEL)
        logger.addHandler(_stream_handler)
        logger.addHandler(_file_handler)
    return logger
