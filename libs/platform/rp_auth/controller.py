"""Authentication controller: the application-facing entry point.

Wires the identity provider client, ID token verifier, transient cookie store
and callback processor from a single RPAuthConfig.

Example:
    >>> controller = AuthenticationController.from_config(RPAuthConfig.from_env())
    >>> url = controller.build_authorize_url(response, "https://app.example.com/callback").build()
    >>> tokens = await controller.handle(request, response)
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from libs.platform.rp_auth.auth_api import AuthAPIClient
from libs.platform.rp_auth.authorize_url import AuthorizeUrl
from libs.platform.rp_auth.config import RPAuthConfig
from libs.platform.rp_auth.id_token_verifier import IdTokenVerifier, VerifyOptions
from libs.platform.rp_auth.protocols import AuthenticationClient, TokenVerifier
from libs.platform.rp_auth.random_values import generate_nonce, generate_state
from libs.platform.rp_auth.request_processor import RequestProcessor
from libs.platform.rp_auth.tokens import Tokens
from libs.platform.rp_auth.transient_cookie_store import TransientCookieStore


class AuthenticationController:
    """Builds authorize URLs and handles callbacks for one identity provider."""

    def __init__(self, processor: RequestProcessor):
        self.processor = processor

    @classmethod
    def from_config(
        cls,
        config: RPAuthConfig,
        client: AuthenticationClient | None = None,
        token_verifier: TokenVerifier | None = None,
    ) -> AuthenticationController:
        """Create a controller from configuration.

        Args:
            config: Relying-party configuration (validated here)
            client: Identity provider client override (default: AuthAPIClient)
            token_verifier: ID token verifier override (default: IdTokenVerifier)

        Raises:
            ConfigurationError: If the configuration is incomplete
        """
        config.validate()

        if client is None:
            client = AuthAPIClient(
                domain=config.domain,
                client_id=config.client_id,
                client_secret=config.client_secret,
                timeout=config.http_timeout_seconds,
            )
        if token_verifier is None:
            token_verifier = IdTokenVerifier(
                domain=config.domain,
                client_secret=config.client_secret,
                cache_ttl_hours=config.jwks_cache_ttl_hours,
            )

        verify_options = VerifyOptions(
            issuer=config.issuer,
            audience=config.client_id,
            algorithm=config.id_token_algorithm,
            max_age=config.max_age,
            clock_skew_seconds=config.clock_skew_seconds,
        )

        processor = RequestProcessor(
            client=client,
            response_type=config.response_type,
            verify_options=verify_options,
            token_verifier=token_verifier,
            cookie_store=TransientCookieStore(namespace=config.cookie_namespace),
            legacy_same_site_cookie=config.legacy_same_site_cookie,
        )
        return cls(processor)

    def build_authorize_url(self, response: Response, redirect_uri: str) -> AuthorizeUrl:
        """Pre-build an authorize URL with freshly generated state and nonce.

        The state/nonce cookies are written to the response when build() is called.
        """
        return self.processor.build_authorize_url(
            response, redirect_uri, state=generate_state(), nonce=generate_nonce()
        )

    async def handle(
        self, request: Request, response: Response, redirect_uri: str | None = None
    ) -> Tokens:
        """Process an authorization callback. See RequestProcessor.process()."""
        return await self.processor.process(request, response, redirect_uri=redirect_uri)


__all__ = ["AuthenticationController"]
