"""
Logging setup for the reps API.

Records are written to stdout, either as one JSON object per line or as
plain text (LOG_FORMAT). Domain events such as ``new_user`` or
``reps_logged`` go through ``log_event`` so their fields land as top-level
JSON keys.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra_fields`` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        log_data.update(getattr(record, "extra_fields", {}))

        # Event payloads may carry datetimes
        return json.dumps(log_data, default=str)


def setup_logging() -> logging.Logger:
    """Route every logger to stdout with the configured level and format."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    use_json = settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Request timing is logged by the app middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit a named domain event (e.g. ``new_user``) as a structured INFO record."""
    logger.info(
        f"event: {event}",
        extra={"extra_fields": {"event": event, **fields}},
    )
