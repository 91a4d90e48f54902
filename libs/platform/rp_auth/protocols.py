"""Collaborator protocols consumed by the callback request processor."""

from typing import Any, Protocol

from libs.platform.rp_auth.auth_api import AuthorizeRequestBuilder, TokenHolder
from libs.platform.rp_auth.id_token_verifier import VerifyOptions


class AuthenticationClient(Protocol):
    """Identity provider client: /authorize query assembly and code exchange.

    exchange_code raises httpx.HTTPError on transport/HTTP failures and
    ValueError on malformed responses.
    """

    def authorize_url(self, redirect_uri: str) -> AuthorizeRequestBuilder: ...

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenHolder: ...


class TokenVerifier(Protocol):
    """ID token verifier; raises jwt.PyJWTError when the token is not trusted."""

    async def verify(self, token: str, options: VerifyOptions) -> dict[str, Any]: ...


__all__ = ["AuthenticationClient", "TokenVerifier"]
