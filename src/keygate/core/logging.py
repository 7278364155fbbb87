"""Logging helpers for Keygate."""
from __future__ import annotations

import logging
from logging.config import dictConfig


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": LOG_FORMAT},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "loggers": {
        # httpx logs every telemetry POST at INFO
        "httpx": {"level": "WARNING"},
        "uvicorn.access": {"level": "INFO"},
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}


def setup_logging(level: str = "INFO", *, access_log: bool = True) -> None:
    """Configure root, uvicorn and httpx logging using dictConfig.

    ``level`` is a standard level name; unknown names raise ``ValueError``
    before any handler is touched. Disabling ``access_log`` silences the
    per-request lines uvicorn emits, which dominate output under load.
    """

    normalized = level.upper()
    if not isinstance(logging.getLevelName(normalized), int):
        raise ValueError(f"Unknown log level: {level!r}")
    loggers = {
        **DEFAULT_LOGGING_CONFIG["loggers"],
        "uvicorn.access": {"level": "INFO" if access_log else "WARNING"},
    }
    config = {
        **DEFAULT_LOGGING_CONFIG,
        "loggers": loggers,
        "root": {**DEFAULT_LOGGING_CONFIG["root"], "level": normalized},
    }
    dictConfig(config)
