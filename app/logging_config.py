"""
Centralized logging configuration.

Sets up:
- Console handler (INFO level)
- Rotating file handler for app.log (DEBUG level)
- Separate file handler for errors.log (ERROR level)
- Rotating provider.log for the AssemblyAI client and poller, so long
  polling sessions can be followed without the rest of the app
"""

import logging
import logging.config
import os

from configs.config import get_config

cfg = get_config()

# Loggers that only need their warnings in our files
THIRD_PARTY_LOGGERS = ("urllib3", "pymongo", "multipart", "reportlab")


def _log_path(file_name: str) -> str:
    return os.path.join(cfg.LOG_DIR, file_name)


def setup_logging() -> None:
    """Configure logging once at application startup."""
    os.makedirs(cfg.LOG_DIR, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "default",
            },
            "app_log_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "default",
                "filename": _log_path(cfg.LOG_FILE_APP),
                "maxBytes": cfg.LOG_MAX_BYTES,
                "backupCount": cfg.LOG_BACKUP_COUNT,
                "encoding": "utf8",
            },
            "error_log_handler": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "formatter": "default",
                "filename": _log_path(cfg.LOG_FILE_ERRORS),
                "encoding": "utf8",
            },
            "provider_log_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "default",
                "filename": _log_path(cfg.LOG_FILE_PROVIDER),
                "maxBytes": cfg.LOG_MAX_BYTES,
                "backupCount": cfg.LOG_BACKUP_COUNT,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "scribevault": {"level": cfg.LOG_LEVEL_APP},
            # Also propagates to the root handlers
            "scribevault.provider": {"handlers": ["provider_log_handler"]},
            **{name: {"level": cfg.LOG_LEVEL_THIRD_PARTY} for name in THIRD_PARTY_LOGGERS},
        },
        "root": {
            "level": "DEBUG",
            "handlers": ["console", "app_log_handler", "error_log_handler"],
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
