"""
Logging setup for the relay and the uvicorn server running it.

Uvicorn's access log is quietened for health checks so that readiness
probes do not drown out session lines.
"""

import logging
import logging.config
from typing import Any, Dict

HEALTH_PATHS = ("/health", "/healthz")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logger name -> handler it writes to
SERVICE_LOGGERS = {
    "uvicorn": "console",
    "uvicorn.error": "console",
    "uvicorn.access": "access",
    "speechrelay": "console",
}


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not ("GET" in message and any(f"{path} " in message for path in HEALTH_PATHS))


def _stdout_handler(formatter: str, **extra: Any) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "stream": "ext://sys.stdout",
        **extra,
    }


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """dictConfig for the relay; also handed to ``uvicorn.run(log_config=...)``."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"skip_health_checks": {"()": HealthCheckFilter}},
        "formatters": {
            "service": {"format": LOG_FORMAT},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "console": _stdout_handler("service"),
            "access": _stdout_handler("access", filters=["skip_health_checks"]),
        },
        "loggers": {
            name: {"handlers": [handler], "level": level, "propagate": False}
            for name, handler in SERVICE_LOGGERS.items()
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
