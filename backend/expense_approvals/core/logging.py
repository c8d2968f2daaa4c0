"""Logging setup: JSON lines in production, plain text everywhere else."""
import logging
import sys

from pythonjsonlogger import jsonlogger

from expense_approvals.core.config import settings

# Loggers whose INFO output drowns out engine events.
_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def setup_logging() -> None:
    """Install the root handler once per process.

    Production emits one JSON object per record so decision and override
    events can be filtered by ``name`` (e.g. ``expense_approvals.services.approval``).
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        logging.root.handlers = [handler]
        logging.root.setLevel(level)
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
