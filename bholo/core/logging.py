"""Structured logging configuration using dictConfig.

Development logs are plain console lines; production logs are JSON objects
carrying the service name and environment as fields.
"""
import logging
import logging.config
import sys
from typing import Dict, Any, Optional

from .settings import Settings, get_settings

# Libraries that are chatty at INFO; they only surface warnings.
QUIET_LIBRARIES = ("botocore", "httpx", "redis", "aiosqlite")


def _library_levels(settings: Settings) -> Dict[str, str]:
    levels = {name: "WARNING" for name in QUIET_LIBRARIES}
    levels["uvicorn"] = "INFO"
    # the SQL echo flag decides whether statements are logged
    levels["sqlalchemy.engine"] = "INFO" if settings.db_echo else "WARNING"
    return levels


def get_logging_config(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Build the dictConfig for one BHOLO service (``api``, a worker...)."""
    settings = settings or get_settings()
    service = service_name or settings.app_name.lower()
    production = settings.environment == "production"

    loggers = {
        "bholo": {"level": settings.log_level, "handlers": ["console"], "propagate": False},
    }
    for name, level in _library_levels(settings).items():
        loggers[name] = {"level": level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                "static_fields": {"service": service, "environment": settings.environment},
            },
            "console": {
                "format": f"%(asctime)s [{service}] [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "json" if production else "console",
                "stream": sys.stdout
            }
        },
        "loggers": loggers,
        "root": {
            "level": "WARNING",
            "handlers": ["console"]
        }
    }


def setup_logging(service_name: Optional[str] = None) -> None:
    """Configure structured logging using dictConfig."""
    logging.config.dictConfig(get_logging_config(service_name))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
