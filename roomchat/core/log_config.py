# roomchat/core/log_config.py
import logging
import logging.config

from .config import settings

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "roomchat": {
            "handlers": ["console"],
            "level": settings.log_level.upper(),
            "propagate": False,
        },
        "sqlalchemy.engine": {"level": "WARNING"},
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger("roomchat")


def get_logger(name: str) -> logging.Logger:
    """Child logger of the application logger, e.g. ``roomchat.chat``."""
    return logger.getChild(name)
