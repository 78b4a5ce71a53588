# solarcrm/logging_config.py
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

from solarcrm.config import settings

APP_LOG_NAME = "solarcrm.log"
ACCESS_LOG_NAME = "access.log"

_ROTATE_BYTES = 5 * 1024 * 1024
_ROTATE_KEEP = 5


def _rotating(filename: Path, formatter: str, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": formatter,
        "filename": str(filename),
        "maxBytes": _ROTATE_BYTES,
        "backupCount": _ROTATE_KEEP,
        "encoding": "utf-8",
        "level": level,
    }


def build_logging_config(log_dir: Path, level: str = "INFO") -> Dict[str, Any]:
    """
    Application records (solarcrm.*, uvicorn server messages, anything on the
    root logger) go to the console and LOG_DIR/solarcrm.log. HTTP access lines
    go to LOG_DIR/access.log only; each file has exactly one handler.
    """
    level = level.upper()
    app_handlers = ["console", "app_file"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"},
            "access": {"format": "%(asctime)s | %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "standard", "level": level},
            "app_file": _rotating(log_dir / APP_LOG_NAME, "standard", level),
            "access_file": _rotating(log_dir / ACCESS_LOG_NAME, "access", "INFO"),
        },
        "loggers": {
            "solarcrm": {"handlers": app_handlers, "level": level, "propagate": False},
            "uvicorn.error": {"handlers": app_handlers, "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access_file"], "level": "INFO", "propagate": False},
        },
        "root": {"handlers": app_handlers, "level": "WARNING"},
    }


def setup_logging(log_dir: Optional[Path] = None) -> None:
    log_dir = Path(log_dir or settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir, settings.LOG_LEVEL))
    logging.getLogger("solarcrm").info("Logging initialized (env=%s, dir=%s)", settings.ENV, log_dir)
