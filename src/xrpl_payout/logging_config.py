import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

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
    },
    "loggers": {
        "xrpl_payout": {
            "level": LOG_LEVEL,
            "handlers": ["console"],
            "propagate": False, # Don't pass 'xrpl_payout' logs up to the root logger
        },
        # Shut the log levels for libraries up
        "httpx": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
        "xrpl": {
            "level": "WARNING", # Only show warnings/errors from xrpl-py
            "handlers": ["console"],
            "propagate": False,
        },
    },
    # Default for all other loggers
    "root": {
        "level": "WARNING",
        "handlers": ["console"],
    },
}


def setup_logging(log_file: str | None = None, level: str | None = None):
    """ Apply the logging configuration, optionally mirroring to ``log_file``. """
    config = {**LOGGING_CONFIG, "handlers": dict(LOGGING_CONFIG["handlers"]), "loggers": {
        name: dict(lc) for name, lc in LOGGING_CONFIG["loggers"].items()
    }}
    if level:
        config["loggers"]["xrpl_payout"]["level"] = level.upper()
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "mode": "a",
        }
        for lc in config["loggers"].values():
            lc["handlers"] = [*lc["handlers"], "file"]
    logging.config.dictConfig(config)
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
