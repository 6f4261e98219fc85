import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE")  # console only unless set


def logging_config(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> dict:
    handlers = ["console"]
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-6s %(name)s:%(lineno)d %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stderr,
            },
        },
        "loggers": {
            "offer_ladder": {"level": level, "handlers": handlers, "propagate": False},
            # One INFO line per payload poll otherwise
            "httpx": {"level": "WARNING", "handlers": handlers, "propagate": False},
        },
    }
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "mode": "a",
        }
        handlers.append("file")
    return config


def setup_logging(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE):
    """Console logging for the `offer_ladder` loggers, plus a file when LOG_FILE is set."""
    logging.config.dictConfig(logging_config(level, log_file))
