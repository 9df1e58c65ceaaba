import logging
import logging.config
import os
from datetime import datetime
from app.core.config import settings

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 10


def _rotating_handler(log_dir: str, category: str, level: str, formatter: str) -> dict:
    """One dated rotating file per category, e.g. logs/salary/salary-2025-06-15.log"""
    current_date = datetime.now().strftime("%Y-%m-%d")
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": os.path.join(log_dir, category, f"{category}-{current_date}.log"),
        "maxBytes": LOG_FILE_MAX_BYTES,
        "backupCount": LOG_FILE_BACKUPS,
        "encoding": "utf-8",
    }


def setup_logging():
    """Setup application logging configuration"""

    log_dir = settings.LOG_DIR
    categories = ("app", "access", "error", "salary")
    for category in categories:
        os.makedirs(os.path.join(log_dir, category), exist_ok=True)

    level = settings.LOG_LEVEL.upper()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "format": "%(asctime)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating_handler(log_dir, "app", level, "detailed"),
            "error_file": _rotating_handler(log_dir, "error", "ERROR", "detailed"),
            "access_file": _rotating_handler(log_dir, "access", "INFO", "access"),
            # Every salary mutation and payment, kept apart for reconciliation
            "salary_file": _rotating_handler(log_dir, "salary", "INFO", "default"),
        },
        "loggers": {
            "": {
                "level": level,
                "handlers": ["console", "app_file", "error_file"],
            },
            "app.services.salary": {
                "level": "INFO",
                "handlers": ["salary_file"],
                "propagate": True,
            },
            "access": {
                "level": "INFO",
                "handlers": ["access_file"] + (["console"] if settings.DEBUG else []),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["access_file"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "INFO" if settings.DEBUG else "WARNING",
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    })

    logger = logging.getLogger(__name__)
    logger.info("🏠 PG Salary Management - Logging configured")
    logger.info(f"📝 Log level: {level} | Logs directory: {log_dir}/ ({', '.join(categories)})")
