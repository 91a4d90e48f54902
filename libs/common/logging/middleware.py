"""ASGI middleware for trace ID extraction and injection."""

from typing import Any

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from libs.common.logging.context import (
    TRACE_ID_HEADER,
    clear_trace_id,
    generate_trace_id,
    set_trace_id,
)


class ASGITraceIDMiddleware:
    """Reads X-Trace-ID (or generates one), sets it for logging, echoes it on the response.

    Implemented at the ASGI level so the header is also present on responses
    produced by exception handlers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers: dict[bytes, Any] = dict(scope.get("headers", []))
        trace_id_bytes = headers.get(TRACE_ID_HEADER.lower().encode())
        trace_id = trace_id_bytes.decode() if trace_id_bytes else generate_trace_id()

        set_trace_id(trace_id)

        async def send_with_trace_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = list(message.get("headers", []))
                response_headers.append((TRACE_ID_HEADER.lower().encode(), trace_id.encode()))
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_trace_id)
        finally:
            clear_trace_id()
