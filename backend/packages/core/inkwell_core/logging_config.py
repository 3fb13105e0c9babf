"""
Logging configuration.

Configures stdlib logging once per process. Modules obtain loggers through
get_logger(__name__) and attach structured context with ``extra={...}``.
"""

import logging
import os
import sys
from logging.config import dictConfig


def init_logging(level: str | None = None) -> None:
    """
    Configure root logging handlers.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var or INFO.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "default",
                    "stream": sys.stdout,
                },
            },
            "loggers": {
                "inkwell_core": {"handlers": ["console"], "level": level, "propagate": False},
                "inkwell_api": {"handlers": ["console"], "level": level, "propagate": False},
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
