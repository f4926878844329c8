import logging
import logging.config
import os
import sys
from typing import Any, Protocol

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("PAYOUT_LOG_FILE", "/tmp/payout.log")

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)-6s %(name)8s:%(lineno)d %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": sys.stdout,
        },
        "file": {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": LOG_FILE,
            "mode": "a",
            "delay": True,
        },
    },
    "loggers": {
        "payout": {
            "level": LOG_LEVEL,
            "handlers": ["console", "file"],
            "propagate": False, # Don't pass 'payout' logs up to the root logger
        },
        # Shut the log levels for libraries up
        "httpx": {
            "level": "WARNING",
            "handlers": ["console", "file"],
            "propagate": False,
        },
        "httpcore": {
            "level": "WARNING",
            "handlers": ["console", "file"],
            "propagate": False,
        },
        "solana": {
            "level": "WARNING", # Only show warnings/errors from solana-py
            "handlers": ["console", "file"],
            "propagate": False,
        },
    },
    # Default for all other loggers
    "root": {
        "level": "WARNING",
        "handlers": ["console", "file"],
    },
}


def setup_logging():
    """ Apply the logging configuration. """
    logging.config.dictConfig(LOGGING_CONFIG)
    os.environ.setdefault("PYTHONUNBUFFERED", "1")


class EventSink(Protocol):
    def emit(self, event: str, *, level: int = logging.INFO, **fields: Any) -> None: ...


class LogEventSink:
    """Render engine events as ``event key=value ...`` log lines."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.log = logger or logging.getLogger("payout.engine")

    def emit(self, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
        if not self.log.isEnabledFor(level):
            return
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        self.log.log(level, f"{event} {rendered}".rstrip())
