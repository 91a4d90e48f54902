"""Structured JSON logging with trace ID support.

Usage:
    # At service startup
    from libs.common.logging import ASGITraceIDMiddleware, configure_logging
    configure_logging(service_name="auth_service", log_level="INFO")
    app.add_middleware(ASGITraceIDMiddleware)

    # In modules
    logger = logging.getLogger(__name__)
    logger.warning("State validation failed", extra={"state": state[:8] + "..."})
"""

from libs.common.logging.config import TraceIDFilter, configure_logging
from libs.common.logging.context import (
    TRACE_ID_HEADER,
    clear_trace_id,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
)
from libs.common.logging.formatter import JSONFormatter
from libs.common.logging.middleware import ASGITraceIDMiddleware

__all__ = [
    "configure_logging",
    "TraceIDFilter",
    "JSONFormatter",
    "ASGITraceIDMiddleware",
    "TRACE_ID_HEADER",
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
    "clear_trace_id",
]
