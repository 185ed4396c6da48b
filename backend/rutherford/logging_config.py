import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _level(env_name: str, default: str) -> str:
    value = os.getenv(env_name, default).upper()
    if not isinstance(logging.getLevelName(value), int):
        raise RuntimeError(f"{env_name} must be a logging level name, got {value!r}")
    return value


def build_logging_config() -> Dict[str, Any]:
    """dictConfig for the signup service.

    ``RUTHERFORD_LOG_LEVEL`` drives the package loggers,
    ``RUTHERFORD_TELEMETRY_LOG_LEVEL`` the ``TELEMETRY`` lines on their own,
    and ``RUTHERFORD_DEBUG_SQL=1`` echoes SQL statements.
    """
    level = _level("RUTHERFORD_LOG_LEVEL", "INFO")
    telemetry_level = _level("RUTHERFORD_TELEMETRY_LOG_LEVEL", level)
    sql_level = "INFO" if os.getenv("RUTHERFORD_DEBUG_SQL", "0") == "1" else "WARNING"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": DEFAULT_LOG_FORMAT}},
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "rutherford": {"level": level},
            "rutherford.telemetry": {"level": telemetry_level},
            "rutherford.migrations": {"level": level},
            "sqlalchemy.engine": {"level": sql_level},
            "alembic": {"level": "INFO"},
        },
        "root": {"handlers": ["default"], "level": "WARNING"},
    }


def configure_logging() -> None:
    """Configure process logging from environment flags."""
    dictConfig(build_logging_config())
