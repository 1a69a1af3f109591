"""
Logging configuration.

Configures the root logger once at startup from LOG_LEVEL / LOG_FORMAT /
LOG_FILE. JSON output writes one object per line and carries any values
passed through ``extra=`` so log shippers can index tenant and entity ids.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from app.core.settings import settings

# Attributes present on every LogRecord; anything else came from extra=
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure root logging handlers. Safe to call more than once."""
    global _configured
    if _configured:
        return

    level_name = (level or settings.LOG_LEVEL).upper()
    formatter: logging.Formatter
    if (fmt or settings.LOG_FORMAT) == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))

    root = logging.getLogger()
    root.setLevel(level_name)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # SQL echo is controlled by DEBUG, not by the app log level
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
