import os
import logging
from logging.config import dictConfig


def setup_logging():
    from clipforge.config.settings import settings
    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    # Suppress verbose loggers
    for logger_name in ["urllib3", "requests", "httpx", "httpcore", "openai",
                        "yt_dlp", "google.auth"]:
        logging.getLogger(logger_name).setLevel(logging.ERROR)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "customFormatter": {
                "format": "[%(asctime)s] [%(levelname)s] [%(filename)s:%(lineno)d] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "customFormatter",
                "level": "DEBUG" if settings.DEBUG else "INFO",
            },
            "info_file_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": os.path.join(log_dir, "info.log"),
                "formatter": "customFormatter",
                "level": "INFO",
                "maxBytes": 5242880,
                "backupCount": 2,
                "encoding": "utf-8"
            },
            "error_file_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": os.path.join(log_dir, "error.log"),
                "formatter": "customFormatter",
                "level": "ERROR",
                "maxBytes": 5242880,
                "backupCount": 2,
                "encoding": "utf-8"
            },
        },
        "loggers": {
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "": {
                "level": "DEBUG" if settings.DEBUG else "INFO",
                "handlers": [
                    "console",
                    "info_file_handler",
                    "error_file_handler"
                ],
            },
        },
    }

    dictConfig(logging_config)
