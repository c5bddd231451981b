"""Logging and telemetry configuration."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "photo_catalog"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """Configure the package logger with a single stream handler."""
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(level.upper())

    for handler in list(package_logger.handlers):
        if getattr(handler, "_photo_catalog", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._photo_catalog = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def log_sync_event(event_type: str, details: Dict[str, Any]) -> None:
    """Log sync-related events."""
    logger.info("sync.%s", event_type, extra={"event": f"sync.{event_type}", **details})


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log error with context."""
    logger.error(
        "%s: %s",
        type(error).__name__,
        error,
        exc_info=(type(error), error, error.__traceback__),
        extra={"event": "error", **(context or {})},
    )
