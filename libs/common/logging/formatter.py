"""JSON log formatter for structured logging.

Example log output:
    {
        "timestamp": "2026-10-19T10:30:00.000Z",
        "level": "WARNING",
        "service": "auth_service",
        "trace_id": "abc123-def456",
        "message": "State validation failed",
        "context": {"state": "q8Hk2xPa...", "stored_state_present": false}
    }
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

# LogRecord attributes that are never treated as extra context
_RESERVED_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "trace_id",
        "context",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields passed through ``extra={...}`` are collected under "context".
    """

    def __init__(self, service_name: str, include_context: bool = True) -> None:
        super().__init__()
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "trace_id": getattr(record, "trace_id", None),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context = self._extract_context(record)
            if context:
                log_entry["context"] = context

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(log_entry, default=str)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        dt = datetime.fromtimestamp(created, tz=UTC)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    @staticmethod
    def _extract_context(record: logging.LogRecord) -> dict[str, Any] | None:
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            return dict(context)

        extra = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_FIELDS
        }
        return extra or None
