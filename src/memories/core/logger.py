import json
import logging
import logging.config
import sys
from typing import Optional

from memories.core.config import Settings, configs


class JsonFormatter(logging.Formatter):
    """
    One JSON object per log line.
    """

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


# Third-party loggers kept quiet regardless of the configured level.
QUIET_LOGGERS = ("timezonefinder", "numba", "pyproj")


def build_logging_config(settings: Settings) -> dict:
    """dictConfig for the given settings: readable text in development, JSON in production."""
    production = settings.ENVIRONMENT.lower() == "production"
    handler = "console_json" if production else "console"

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JsonFormatter,
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
        },
        "handlers": {
            handler: {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "json" if production else "default",
            },
        },
        "loggers": {
            "root": {
                "level": settings.LOG_LEVEL,
                "handlers": [handler],
            },
            "memories": {
                "level": settings.LOG_LEVEL,
                "handlers": [handler],
                "propagate": False,
            },
        },
    }
    for name in QUIET_LOGGERS:
        config["loggers"][name] = {"level": "WARNING", "handlers": [handler], "propagate": False}
    return config


def setup_logging(settings: Optional[Settings] = None):
    """
    Set up logging configuration based on the environment.
    """
    settings = settings or configs
    logging.config.dictConfig(build_logging_config(settings))

    logger = logging.getLogger("memories")
    logger.info(f"Logging setup complete for {settings.ENVIRONMENT.lower()} environment with level {settings.LOG_LEVEL}")
