import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# Telemetry messages are already one JSON object per line.
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"

TELEMETRY_LOGGER = "sciwrite.telemetry"
MIGRATIONS_LOGGER = "sciwrite.migrations"
HTTP_LOGGERS = ("httpx", "openai", "uvicorn.access")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes"}


def build_logging_config(
    level: Optional[str] = None,
    *,
    telemetry_level: Optional[str] = None,
    migrations_level: Optional[str] = None,
    debug_http: Optional[bool] = None,
) -> Dict[str, Any]:
    """Return the ``dictConfig`` mapping; unset arguments fall back to SCIWRITE_* env vars.

    Telemetry lines go to stdout on their own handler so they can be shipped
    separately from application logs. Migration runs log through their own
    logger together with Alembic's.
    """
    root_level = (level or os.getenv("SCIWRITE_LOG_LEVEL", "INFO")).upper()
    telemetry = (telemetry_level or os.getenv("SCIWRITE_TELEMETRY_LOG_LEVEL", "INFO")).upper()
    migrations = (migrations_level or os.getenv("SCIWRITE_MIGRATIONS_LOG_LEVEL", "INFO")).upper()
    if debug_http is None:
        debug_http = _env_flag("SCIWRITE_DEBUG_HTTP")

    loggers: Dict[str, Any] = {
        TELEMETRY_LOGGER: {
            "handlers": ["telemetry"],
            "level": telemetry,
            "propagate": False,
        },
        MIGRATIONS_LOGGER: {
            "handlers": ["default"],
            "level": migrations,
            "propagate": False,
        },
        "alembic": {
            "handlers": ["default"],
            "level": migrations,
            "propagate": False,
        },
    }
    if debug_http:
        for name in HTTP_LOGGERS:
            loggers[name] = {"level": "DEBUG"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": DEFAULT_LOG_FORMAT},
            "telemetry": {"format": TELEMETRY_LOG_FORMAT},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
            "telemetry": {
                "class": "logging.StreamHandler",
                "formatter": "telemetry",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": loggers,
        "root": {
            "handlers": ["default"],
            "level": root_level,
        },
    }


def configure_logging(**overrides: Any) -> None:
    """Configure logging for the API process and the migration runner."""
    dictConfig(build_logging_config(**overrides))
    logging.getLogger(__name__).debug("Logging configured")
