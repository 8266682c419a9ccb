"""
Logging configuration for the daemon.

IDE plugins poll the health and status endpoints every few seconds; their
access log lines are dropped so real requests stay visible.
"""

import logging
import logging.config
from typing import Any, Dict

QUIET_PATHS = ("/healthz", "/api/status")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class PollingFilter(logging.Filter):
    """Drop uvicorn access records for GET requests to polled endpoints."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not ("GET" in message and any(f"{path} " in message for path in QUIET_PATHS))


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """
    Build the dictConfig for the daemon.

    Application loggers propagate to the root logger at `level`. uvicorn's
    server messages go through the same handler; its access log gets a bare
    formatter and the polling filter.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"polling": {"()": PollingFilter}},
        "formatters": {
            "default": {"format": LOG_FORMAT},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["polling"],
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
        "root": {"handlers": ["default"], "level": level.upper()},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
