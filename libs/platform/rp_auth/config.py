"""Relying-party OIDC configuration."""

import os
from dataclasses import dataclass

from libs.platform.rp_auth.exceptions import ConfigurationError
from libs.platform.rp_auth.response_type import parse_response_type

_SUPPORTED_ALGORITHMS = ("RS256", "ES256", "HS256")


@dataclass
class RPAuthConfig:
    """Relying-party configuration with secure defaults.

    All settings can be overridden via environment variables using from_env().
    """

    # Identity provider
    domain: str = ""
    client_id: str = ""
    client_secret: str | None = None

    # Authorization request
    response_type: str = "code"
    redirect_uri: str = ""
    max_age: int | None = None  # Seconds; sent as max_age and enforced via auth_time

    # Transient state/nonce cookies
    cookie_namespace: str = "rp_auth"
    legacy_same_site_cookie: bool = True  # Shadow cookie for clients rejecting SameSite=None

    # ID token verification
    id_token_algorithm: str = "RS256"
    clock_skew_seconds: int = 60
    jwks_cache_ttl_hours: int = 12

    # Token endpoint
    http_timeout_seconds: float = 10.0

    @property
    def issuer(self) -> str:
        return f"https://{self.domain}/"

    def validate(self) -> None:
        """Check the configuration is usable.

        Raises:
            ConfigurationError: On missing identity provider settings, an unsupported
                algorithm, HS256 without a client secret, or an invalid response type
        """
        if not self.domain:
            raise ConfigurationError("OIDC domain is not configured")
        if not self.client_id:
            raise ConfigurationError("OIDC client_id is not configured")
        if self.id_token_algorithm not in _SUPPORTED_ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported ID token algorithm {self.id_token_algorithm}; "
                f"expected one of {list(_SUPPORTED_ALGORITHMS)}"
            )
        if self.id_token_algorithm == "HS256" and not self.client_secret:
            raise ConfigurationError("HS256 ID token verification requires a client secret")
        if self.max_age is not None and self.max_age < 0:
            raise ConfigurationError("max_age must not be negative")
        parse_response_type(self.response_type)

    @classmethod
    def from_env(cls) -> "RPAuthConfig":
        """Load configuration from environment variables.

        Environment variable mapping:
        - OIDC_DOMAIN: Identity provider domain (e.g. "tenant.eu.auth0.com")
        - OIDC_CLIENT_ID / OIDC_CLIENT_SECRET: Application credentials
        - OIDC_RESPONSE_TYPE: Space-separated response type (default: "code")
        - OIDC_REDIRECT_URI: Callback URL registered with the provider
        - OIDC_MAX_AGE: Maximum authentication age in seconds
        - OIDC_COOKIE_NAMESPACE: Prefix for state/nonce cookie names
        - OIDC_LEGACY_SAMESITE_COOKIE: Emit legacy fallback cookies (true/false)
        - OIDC_ID_TOKEN_ALGORITHM: RS256, ES256 or HS256
        - OIDC_CLOCK_SKEW_SECONDS: Leeway for exp/iat/auth_time checks
        - OIDC_JWKS_CACHE_TTL_HOURS: JWKS cache lifetime
        - OIDC_HTTP_TIMEOUT_SECONDS: Token endpoint timeout
        """
        return cls(
            domain=os.getenv("OIDC_DOMAIN", ""),
            client_id=os.getenv("OIDC_CLIENT_ID", ""),
            client_secret=os.getenv("OIDC_CLIENT_SECRET") or None,
            response_type=os.getenv("OIDC_RESPONSE_TYPE", "code"),
            redirect_uri=os.getenv("OIDC_REDIRECT_URI", ""),
            max_age=(
                int(max_age_str) if (max_age_str := os.getenv("OIDC_MAX_AGE")) else None
            ),
            cookie_namespace=os.getenv("OIDC_COOKIE_NAMESPACE", "rp_auth"),
            legacy_same_site_cookie=(
                os.getenv("OIDC_LEGACY_SAMESITE_COOKIE", "true").lower() == "true"
            ),
            id_token_algorithm=os.getenv("OIDC_ID_TOKEN_ALGORITHM", "RS256"),
            clock_skew_seconds=int(os.getenv("OIDC_CLOCK_SKEW_SECONDS", "60")),
            jwks_cache_ttl_hours=int(os.getenv("OIDC_JWKS_CACHE_TTL_HOURS", "12")),
            http_timeout_seconds=float(os.getenv("OIDC_HTTP_TIMEOUT_SECONDS", "10")),
        )


__all__ = ["RPAuthConfig"]
