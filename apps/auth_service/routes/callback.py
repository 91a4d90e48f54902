"""Authorization callback: validates state/nonce, exchanges the code, returns tokens."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from apps.auth_service.dependencies import get_config, get_controller
from libs.platform.rp_auth import (
    ApiError,
    IdentityVerificationError,
    TokenValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def error_status(exc: IdentityVerificationError) -> int:
    """HTTP status for a callback failure."""
    if isinstance(exc, TokenValidationError):
        return 401
    if isinstance(exc, ApiError):
        return 502
    # ProviderError, InvalidRequestError
    return 400


def copy_set_cookie_headers(source: Response, target: Response) -> None:
    """Carry the state/nonce cookie expirations over to the response actually sent."""
    for header, value in source.raw_headers:
        if header == b"set-cookie":
            target.raw_headers.append((header, value))


@router.api_route("/callback", methods=["GET", "POST"], name="callback")
async def callback(request: Request) -> JSONResponse:
    """Handle the identity provider callback (query string or form_post).

    Returns:
        200 with the verified token set; 400/401/502 with the error code on failure.
        Both carry Set-Cookie headers expiring the state/nonce cookies.
    """
    config = get_config()
    controller = get_controller()

    cookie_sink = Response()

    try:
        tokens = await controller.handle(
            request, cookie_sink, redirect_uri=config.redirect_uri or None
        )
    except IdentityVerificationError as e:
        status_code = error_status(e)
        logger.warning(
            "Authorization callback rejected",
            extra={"error": e.code, "status_code": status_code},
        )
        response = JSONResponse(
            status_code=status_code,
            content={"error": e.code, "error_description": e.description},
        )
        copy_set_cookie_headers(cookie_sink, response)
        return response

    response = JSONResponse(
        content=tokens.model_dump(exclude_none=True),
        headers={"Cache-Control": "no-store"},
    )
    copy_set_cookie_headers(cookie_sink, response)

    logger.info("Authorization callback succeeded")

    return response
