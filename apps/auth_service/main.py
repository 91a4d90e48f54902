"""FastAPI auth service: OIDC relying-party endpoints.

- /login: Stores one-time state/nonce cookies, redirects to the authorize endpoint
- /callback: Validates the provider callback (query or form_post), returns verified tokens
- /health: Liveness check
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apps.auth_service.routes import callback, login
from libs.common.logging import ASGITraceIDMiddleware, configure_logging
from libs.platform.rp_auth import ConfigurationError

configure_logging(service_name="auth_service", log_level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Auth Service",
    description="OIDC relying-party login and callback endpoints",
    version="1.0.0",
)

app.add_middleware(ASGITraceIDMiddleware)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Misconfiguration is never the caller's fault; report 500 without details."""
    logger.error(
        "Auth service misconfigured",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(status_code=500, content={"detail": "Authentication is not configured"})


app.include_router(login.router, tags=["auth"])
app.include_router(callback.router, tags=["auth"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy", "service": "auth_service"}
