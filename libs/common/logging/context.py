"""Trace ID context propagation for request correlation in logs.

Each authorization round trip (login redirect, provider callback) gets a trace
ID so all log lines for that request can be grouped, including the state and
nonce cookie handling.
"""

import contextvars
import uuid

_trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

# HTTP header name for trace ID propagation
TRACE_ID_HEADER = "X-Trace-ID"


def generate_trace_id() -> str:
    """Generate a new trace ID (UUID v4 string)."""
    return str(uuid.uuid4())


def get_trace_id() -> str | None:
    return _trace_id_var.get()


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context.

    Raises:
        ValueError: If trace_id is empty
    """
    if not trace_id:
        raise ValueError("Trace ID cannot be empty")
    _trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    _trace_id_var.set(None)
