"""Login redirect with one-time state/nonce cookies."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from apps.auth_service.dependencies import get_config, get_controller

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/login")
async def login(request: Request) -> RedirectResponse:
    """Redirect the browser to the identity provider's authorize endpoint.

    The redirect response is created first so the state/nonce cookies written
    by build() end up on the response actually returned.
    """
    config = get_config()
    controller = get_controller()

    redirect_uri = config.redirect_uri or str(request.url_for("callback"))

    response = RedirectResponse(url="/", status_code=302)
    authorize_url = controller.build_authorize_url(response, redirect_uri).build()
    response.headers["location"] = authorize_url

    logger.info("Login redirect issued", extra={"redirect_uri": redirect_uri})

    return response
