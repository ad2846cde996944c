"""
Process-wide logging setup shared by the API and Celery workers.

``LoggingConfig()`` is idempotent; ``get_logger`` returns a child of the
application logger so every line carries the same prefix.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from app.config import get_settings

APP_LOGGER_NAME = "inbox"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    _configured = False

    def __init__(self, level: Optional[str] = None) -> None:
        if LoggingConfig._configured:
            return
        level = (level or get_settings().log_level or "INFO").upper()
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {"default": {"format": LOG_FORMAT}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "formatter": "default",
                    }
                },
                "loggers": {
                    APP_LOGGER_NAME: {
                        "handlers": ["console"],
                        "level": level,
                        "propagate": False,
                    },
                    "app": {
                        "handlers": ["console"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )
        LoggingConfig._configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger under the application logger."""
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
