"""Identity provider Authentication API client.

Covers the two provider interactions the relying party needs:
1. Assembling the /authorize query string (AuthorizeRequestBuilder)
2. Exchanging an authorization code at /oauth/token (exchange_code)

References:
- OAuth2: RFC 6749 Section 4.1.3
- OIDC: https://openid.net/specs/openid-connect-core-1_0.html#TokenRequest
"""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TokenHolder(BaseModel):
    """Token endpoint response body."""

    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    scope: str | None = None


class AuthorizeRequestBuilder:
    """Low-level /authorize query string assembly.

    Parameters are kept in insertion order; setting a parameter twice replaces it.
    """

    def __init__(self, authorization_endpoint: str, client_id: str, redirect_uri: str):
        self.authorization_endpoint = authorization_endpoint
        self.parameters: dict[str, str] = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
        }

    def with_response_type(self, response_type: str) -> "AuthorizeRequestBuilder":
        return self.with_parameter("response_type", response_type)

    def with_scope(self, scope: str) -> "AuthorizeRequestBuilder":
        return self.with_parameter("scope", scope)

    def with_state(self, state: str) -> "AuthorizeRequestBuilder":
        return self.with_parameter("state", state)

    def with_audience(self, audience: str) -> "AuthorizeRequestBuilder":
        return self.with_parameter("audience", audience)

    def with_connection(self, connection: str) -> "AuthorizeRequestBuilder":
        return self.with_parameter("connection", connection)

    def with_parameter(self, name: str, value: str) -> "AuthorizeRequestBuilder":
        self.parameters[name] = value
        return self

    def build(self) -> str:
        return f"{self.authorization_endpoint}?{urlencode(self.parameters)}"


class AuthAPIClient:
    """Client for the identity provider's authorization and token endpoints."""

    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str | None = None,
        timeout: float = 10.0,
    ):
        """Initialize Authentication API client.

        Args:
            domain: Identity provider domain (e.g., "tenant.eu.auth0.com")
            client_id: Application client ID
            client_secret: Application client secret (None for public clients)
            timeout: Token endpoint timeout in seconds
        """
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

        self.authorization_endpoint = f"https://{domain}/authorize"
        self.token_endpoint = f"https://{domain}/oauth/token"

    def authorize_url(self, redirect_uri: str) -> AuthorizeRequestBuilder:
        """Start an /authorize request for the given redirect URI."""
        return AuthorizeRequestBuilder(
            self.authorization_endpoint,
            client_id=self.client_id,
            redirect_uri=redirect_uri,
        )

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenHolder:
        """Exchange an authorization code for tokens.

        No retry is attempted; the caller owns the retry policy.

        Args:
            code: Authorization code from the callback
            redirect_uri: Redirect URI used in the authorization request

        Returns:
            Parsed token endpoint response

        Raises:
            httpx.HTTPStatusError: If the token endpoint returned 4xx/5xx
            httpx.RequestError: On network errors (timeout, DNS, connection)
            ValueError: If the response body is not a valid token response
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            payload: Any = response.json()

        if not isinstance(payload, dict):
            raise ValueError("Token endpoint returned a non-object response")

        holder = TokenHolder.model_validate(payload)

        logger.info(
            "Authorization code exchanged",
            extra={
                "domain": self.domain,
                "has_id_token": holder.id_token is not None,
                "has_refresh_token": holder.refresh_token is not None,
            },
        )

        return holder


__all__ = ["AuthAPIClient", "AuthorizeRequestBuilder", "TokenHolder"]
