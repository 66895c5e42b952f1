import logging
import os
from logging.config import dictConfig
from typing import Dict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Logger name -> environment flag that overrides its level.
_LEVEL_OVERRIDES: Dict[str, str] = {
    "practice.telemetry": "PRACTICE_TELEMETRY_LOG_LEVEL",
    "practice.migrations": "PRACTICE_DB_MIGRATION_LOG_LEVEL",
    "openai.agents": "PRACTICE_GENERATOR_LOG_LEVEL",
}


def configure_logging() -> None:
    """Route engine, telemetry and generator logs through one stream handler."""
    root_level = os.getenv("PRACTICE_LOG_LEVEL", "INFO").upper()
    loggers = {
        name: {"level": os.getenv(flag, "").upper() or root_level}
        for name, flag in _LEVEL_OVERRIDES.items()
    }
    if os.getenv("PRACTICE_DEBUG_SQL", "0") == "1":
        loggers["sqlalchemy.engine"] = {"level": "INFO"}
    if os.getenv("PRACTICE_DEBUG_HTTP", "0") == "1":
        loggers["httpx"] = {"level": "DEBUG"}
        loggers["uvicorn.access"] = {"level": "DEBUG"}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": LOG_FORMAT}},
            "handlers": {
                "stream": {"class": "logging.StreamHandler", "formatter": "plain"},
            },
            "loggers": loggers,
            "root": {"handlers": ["stream"], "level": root_level},
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s", root_level)
