"""
Logging setup.
Applies a single console handler at the configured LOG_LEVEL.
"""
from __future__ import annotations

import logging.config

from zenamanage.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "zenamanage": {
                    "handlers": ["console"],
                    "level": level or settings.LOG_LEVEL,
                    "propagate": False,
                },
                # SQL echo is controlled by DEBUG on the engine itself
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
