"""Transient cookie storage for OAuth2 state and OIDC nonce values.

CRITICAL SECURITY: state and nonce are stored in short-lived HttpOnly cookies
and consumed with SINGLE-USE semantics to prevent CSRF and replay attacks.
No server-side storage is involved; the browser carries the values between the
authorize redirect and the callback.

Cookie names:
  <namespace>.state / <namespace>.nonce          primary cookies
  _<namespace>.state / _<namespace>.nonce        legacy fallback (SameSite=None only)

Single-Use Enforcement:
  - retrieve_once() expires BOTH candidate cookies on every call, found or not
  - A second read in the same response cycle reports absent
"""

from __future__ import annotations

import logging
from enum import Enum

from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

STATE_KEY = "state"
NONCE_KEY = "nonce"
LEGACY_PREFIX = "_"


class SameSite(str, Enum):
    """SameSite cookie attribute values."""

    LAX = "Lax"
    NONE = "None"
    STRICT = "Strict"


class TransientCookieStore:
    """Stores and consumes one-time state/nonce cookies."""

    def __init__(self, namespace: str = "rp_auth", cookie_path: str = "/"):
        """Initialize transient cookie store.

        Args:
            namespace: Cookie name prefix (cookies are named "<namespace>.<key>")
            cookie_path: Path attribute for all transient cookies
        """
        self.namespace = namespace
        self.cookie_path = cookie_path

    def cookie_name(self, key: str) -> str:
        return f"{self.namespace}.{key}"

    def legacy_cookie_name(self, key: str) -> str:
        return f"{LEGACY_PREFIX}{self.cookie_name(key)}"

    def store(
        self,
        response: Response,
        key: str,
        value: str,
        same_site: SameSite,
        use_legacy_fallback: bool,
    ) -> None:
        """Set a transient cookie on the response.

        Secure is forced for SameSite=None (browsers reject it otherwise). When
        SameSite=None and legacy fallback is enabled, a second cookie "_<name>" is
        set without SameSite/Secure for clients that reject unknown SameSite values.

        Args:
            response: Response receiving the Set-Cookie header(s)
            key: "state" or "nonce"
            value: Opaque random value
            same_site: SameSite policy for the primary cookie
            use_legacy_fallback: Whether to also emit the legacy cookie
        """
        same_site = SameSite(same_site)
        is_same_site_none = same_site is SameSite.NONE

        response.set_cookie(
            key=self.cookie_name(key),
            value=value,
            path=self.cookie_path,
            httponly=True,
            secure=is_same_site_none,
            samesite=same_site.value,
        )

        if is_same_site_none and use_legacy_fallback:
            response.set_cookie(
                key=self.legacy_cookie_name(key),
                value=value,
                path=self.cookie_path,
                httponly=True,
                samesite=None,
            )

        logger.debug(
            "Transient cookie stored",
            extra={
                "cookie": self.cookie_name(key),
                "same_site": same_site.value,
                "legacy_fallback": is_same_site_none and use_legacy_fallback,
            },
        )

    def retrieve_once(
        self,
        request: Request,
        response: Response,
        key: str,
        use_legacy_fallback: bool,
    ) -> str | None:
        """Read a transient cookie and expire it (single-use enforcement).

        Both the primary and the legacy cookie are expired in the response on
        every call, even when neither was sent, so a failed attempt leaves no
        replay window.

        Args:
            request: Incoming callback request
            response: Response receiving the expiring Set-Cookie headers
            key: "state" or "nonce"
            use_legacy_fallback: Whether to fall back to the legacy cookie

        Returns:
            Cookie value if present and not already consumed, None otherwise
        """
        name = self.cookie_name(key)
        legacy_name = self.legacy_cookie_name(key)

        already_consumed = self._is_expired_in(response, name)

        value: str | None = None
        if not already_consumed and request.cookies:
            value = request.cookies.get(name) or None
            if value is None and use_legacy_fallback:
                value = request.cookies.get(legacy_name) or None

        self._expire(response, name)
        self._expire(response, legacy_name)

        if value is None:
            logger.warning(
                "Transient cookie not found or already used",
                extra={"cookie": name, "already_consumed": already_consumed},
            )

        return value

    def store_state(
        self,
        response: Response,
        state: str,
        same_site: SameSite,
        use_legacy_fallback: bool,
    ) -> None:
        self.store(response, STATE_KEY, state, same_site, use_legacy_fallback)

    def store_nonce(
        self,
        response: Response,
        nonce: str,
        same_site: SameSite,
        use_legacy_fallback: bool,
    ) -> None:
        self.store(response, NONCE_KEY, nonce, same_site, use_legacy_fallback)

    def get_state(
        self, request: Request, response: Response, use_legacy_fallback: bool
    ) -> str | None:
        return self.retrieve_once(request, response, STATE_KEY, use_legacy_fallback)

    def get_nonce(
        self, request: Request, response: Response, use_legacy_fallback: bool
    ) -> str | None:
        return self.retrieve_once(request, response, NONCE_KEY, use_legacy_fallback)

    def _expire(self, response: Response, name: str) -> None:
        if self._is_expired_in(response, name):
            return
        response.delete_cookie(
            key=name,
            path=self.cookie_path,
            httponly=True,
            samesite=None,
        )

    @staticmethod
    def _is_expired_in(response: Response, name: str) -> bool:
        """Whether the response already carries an expiring Set-Cookie for this name."""
        prefix = f"{name}=".encode("latin-1")
        for header, value in response.raw_headers:
            if header == b"set-cookie" and value.startswith(prefix) and b"Max-Age=0" in value:
                return True
        return False


__all__ = ["LEGACY_PREFIX", "NONCE_KEY", "STATE_KEY", "SameSite", "TransientCookieStore"]
