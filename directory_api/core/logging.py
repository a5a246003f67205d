"""
Centralized Logging Configuration

One profile per environment: JSON records in production, readable
single-line records in development and test. Every module logs through
``logging.getLogger(__name__)``; this module only wires handlers and levels
on the root logger, for both the API process and Celery workers.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

SERVICE_NAME = "directory-api"

# environment -> (default level, json output)
LOGGING_PROFILES = {
    "development": ("DEBUG", False),
    "test": ("WARNING", False),
    "production": ("INFO", True),
}

# Domain identifiers copied onto JSON records when passed via ``extra=``
CONTEXT_FIELDS = ("business_id", "inquiry_id", "user_id", "event_type", "task_id", "duration_ms")

QUIET_LOGGERS = ("urllib3", "httpx", "sqlalchemy.engine", "multipart", "celery.redirected")


class JsonFormatter(logging.Formatter):
    """One JSON object per record"""

    def __init__(self, environment: str = "production"):
        super().__init__()
        self.environment = environment

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "environment": self.environment,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _text_formatter() -> logging.Formatter:
    return logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def configure_logging(
    environment: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Install root handlers for ``environment``.

    Args:
        environment: development, test or production; unknown values use
            the production profile
        level: overrides the profile's default level (e.g. LOG_LEVEL)
        log_file: optional extra file handler using the same formatter

    Returns:
        The service logger
    """
    environment = (environment or "production").lower()
    default_level, use_json = LOGGING_PROFILES.get(environment, LOGGING_PROFILES["production"])
    numeric_level = getattr(logging, (level or default_level).upper(), logging.INFO)

    formatter = JsonFormatter(environment) if use_json else _text_formatter()

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(SERVICE_NAME)
