"""Single-use authorize URL builder.

Finalizing the builder (build()) stores the state and nonce as transient
cookies on the response and returns the URL. The builder then moves to the
FINALIZED state and cannot be built again, so cookies and URLs are never
emitted twice with stale parameters.
"""

from __future__ import annotations

import logging
from enum import Enum

from starlette.responses import Response

from libs.platform.rp_auth.exceptions import ConfigurationError
from libs.platform.rp_auth.protocols import AuthenticationClient
from libs.platform.rp_auth.random_values import generate_state
from libs.platform.rp_auth.response_type import parse_response_type
from libs.platform.rp_auth.transient_cookie_store import SameSite, TransientCookieStore

logger = logging.getLogger(__name__)

SCOPE_OPENID = "openid"

_RESERVED_PARAMETERS = {
    "state": "Please use the dedicated methods for setting the 'nonce' and 'state' parameters.",
    "nonce": "Please use the dedicated methods for setting the 'nonce' and 'state' parameters.",
    "response_type": "Response type cannot be changed once set.",
    "redirect_uri": "Redirect URI cannot be changed once set.",
}


class BuilderState(str, Enum):
    PENDING = "pending"
    FINALIZED = "finalized"


class AuthorizeUrl:
    """Builds an authorization URL and persists its state/nonce. Not reusable."""

    def __init__(
        self,
        client: AuthenticationClient,
        response: Response,
        redirect_uri: str,
        response_type: str,
        cookie_store: TransientCookieStore | None = None,
    ):
        """Initialize authorize URL builder.

        Args:
            client: Identity provider client used for query assembly
            response: Response that receives the state/nonce cookies on build()
            redirect_uri: Callback URL the provider redirects back to
            response_type: Space-separated response type
            cookie_store: Transient cookie store (default namespace when None)
        """
        self._response = response
        self._response_type = parse_response_type(response_type)
        self._cookie_store = cookie_store or TransientCookieStore()
        self._legacy_same_site_cookie = True
        self._state: str | None = None
        self._nonce: str | None = None
        self._lifecycle = BuilderState.PENDING
        self._builder = (
            client.authorize_url(redirect_uri)
            .with_response_type(self._response_type.raw)
            .with_scope(SCOPE_OPENID)
        )

    @property
    def lifecycle(self) -> BuilderState:
        return self._lifecycle

    @property
    def parameters(self) -> dict[str, str]:
        """Query parameters accumulated so far (copy)."""
        return dict(self._builder.parameters)

    def with_state(self, state: str) -> AuthorizeUrl:
        self._state = state
        self._builder.with_state(state)
        return self

    def with_nonce(self, nonce: str) -> AuthorizeUrl:
        self._nonce = nonce
        self._builder.with_parameter("nonce", nonce)
        return self

    def with_legacy_same_site_cookie(self, legacy_same_site_cookie: bool) -> AuthorizeUrl:
        self._legacy_same_site_cookie = legacy_same_site_cookie
        return self

    def with_scope(self, scope: str) -> AuthorizeUrl:
        self._builder.with_scope(scope)
        return self

    def with_audience(self, audience: str) -> AuthorizeUrl:
        self._builder.with_audience(audience)
        return self

    def with_connection(self, connection: str) -> AuthorizeUrl:
        self._builder.with_connection(connection)
        return self

    def with_organization(self, organization: str) -> AuthorizeUrl:
        self._builder.with_parameter("organization", organization)
        return self

    def with_invitation(self, invitation: str) -> AuthorizeUrl:
        self._builder.with_parameter("invitation", invitation)
        return self

    def with_parameter(self, name: str, value: str) -> AuthorizeUrl:
        """Set an additional query parameter.

        Raises:
            ConfigurationError: If name is state, nonce, response_type or redirect_uri
        """
        if name in _RESERVED_PARAMETERS:
            raise ConfigurationError(_RESERVED_PARAMETERS[name])
        self._builder.with_parameter(name, value)
        return self

    def build(self) -> str:
        """Store state/nonce cookies and return the authorization URL.

        Returns:
            The authorization URL

        Raises:
            ConfigurationError: If called more than once on the same instance
        """
        if self._lifecycle is BuilderState.FINALIZED:
            raise ConfigurationError("The AuthorizeUrl instance must not be reused.")
        self._lifecycle = BuilderState.FINALIZED

        state = self._state
        if state is None:
            state = generate_state()
            self.with_state(state)

        # id_token responses come back as a cross-site form POST
        same_site = (
            SameSite.NONE if self._response_type.requires_cross_site_cookies else SameSite.LAX
        )

        self._cookie_store.store_state(
            self._response, state, same_site, self._legacy_same_site_cookie
        )
        if self._nonce is not None:
            self._cookie_store.store_nonce(
                self._response, self._nonce, same_site, self._legacy_same_site_cookie
            )

        logger.info(
            "Authorize URL built",
            extra={
                "response_type": self._response_type.raw,
                "same_site": same_site.value,
                "state": state[:8] + "...",
                "has_nonce": self._nonce is not None,
            },
        )

        return self._builder.build()


__all__ = ["SCOPE_OPENID", "AuthorizeUrl", "BuilderState"]
