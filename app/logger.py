import logging
import os
from logging.config import dictConfig


LOGGER_NAME = "movie_catalog"
LOG_FORMAT = "%(levelprefix)s | %(asctime)s | %(message)s"
ACCESS_FORMAT = (
    '%(levelprefix)s | %(asctime)s | %(client_addr)s - "%(request_line)s" %(status_code)s'
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def create_log_config(log_level: str):
    """
    Logging configuration for the catalog logger and the uvicorn server loggers.

    uvicorn's error logger shares the catalog handler so startup failures and
    request logs end up on the same stream, and access lines get their own
    format with the client address and response status.
    """
    return {
        "logger_name": LOGGER_NAME,
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": ACCESS_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["default"], "level": log_level},
            "uvicorn.error": {"handlers": ["default"], "level": log_level, "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
    }


def get_log_level() -> str:
    return "DEBUG" if os.environ.get("DEBUG") else "INFO"


dictConfig(create_log_config(log_level=get_log_level()))
logger = logging.getLogger(LOGGER_NAME)
