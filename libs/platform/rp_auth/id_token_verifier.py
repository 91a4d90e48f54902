"""ID token verification (signature and OIDC claims).

Signature verification is delegated to PyJWT:
- RS256 / ES256: public keys fetched from the provider JWKS, cached with kid rollover
- HS256: client secret

Claim validation follows OIDC Core 3.1.3.7: iss, sub, aud (azp when several
audiences), exp, iat, nonce (when expected), auth_time (when max_age is set).

References:
- JWKS: RFC 7517
- JWT: RFC 7519
- OIDC ID Token: https://openid.net/specs/openid-connect-core-1_0.html#IDTokenValidation
"""

import logging
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt
from jwt.algorithms import ECAlgorithm, RSAAlgorithm

logger = logging.getLogger(__name__)

_ASYMMETRIC_ALGORITHMS = ("RS256", "ES256")


@dataclass
class VerifyOptions:
    """Expected ID token properties.

    nonce is per authorization attempt, so it is filled in just before
    verification via with_nonce() rather than configured statically.
    """

    issuer: str
    audience: str
    algorithm: str = "RS256"
    max_age: int | None = None
    clock_skew_seconds: int = 60
    nonce: str | None = None

    def with_nonce(self, nonce: str | None) -> "VerifyOptions":
        """Return a copy carrying the given nonce."""
        return replace(self, nonce=nonce)


class IdTokenVerifier:
    """Validates OIDC ID tokens for a single identity provider."""

    def __init__(
        self,
        domain: str,
        client_secret: str | None = None,
        cache_ttl_hours: int = 12,
    ):
        """Initialize ID token verifier.

        Args:
            domain: Identity provider domain (e.g., "tenant.eu.auth0.com")
            client_secret: Client secret, required only for HS256 tokens
            cache_ttl_hours: JWKS cache TTL in hours (default: 12)
        """
        self.domain = domain
        self.jwks_url = f"https://{domain}/.well-known/jwks.json"
        self.client_secret = client_secret
        self.cache_ttl = timedelta(hours=cache_ttl_hours)

        # JWKS cache
        self._jwks_cache: dict[str, Any] | None = None
        self._cache_expires_at: datetime | None = None

    async def _fetch_jwks(self) -> dict[str, Any]:
        """Fetch JWKS from the provider .well-known endpoint.

        Raises:
            httpx.HTTPStatusError: If JWKS fetch fails
            ValueError: If the body is not a JWKS object with a "keys" list
        """
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()
            jwks: Any = response.json()

        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise ValueError(f"Malformed JWKS response from {self.jwks_url}")
        return jwks

    async def get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        """Get JWKS with caching.

        Args:
            force_refresh: Force cache refresh (for key rotation)
        """
        now = datetime.now(UTC)

        if not force_refresh and self._jwks_cache and self._cache_expires_at:
            if now < self._cache_expires_at:
                return self._jwks_cache

        self._jwks_cache = await self._fetch_jwks()
        self._cache_expires_at = now + self.cache_ttl

        logger.info(
            "JWKS fetched and cached",
            extra={
                "domain": self.domain,
                "expires_at": self._cache_expires_at.isoformat(),
            },
        )

        return self._jwks_cache

    def _load_signing_key(self, jwk: dict[str, Any], alg: str) -> Any:
        try:
            if alg == "RS256":
                return RSAAlgorithm.from_jwk(jwk)
            if alg == "ES256":
                return ECAlgorithm.from_jwk(jwk)
        except (ValueError, TypeError, jwt.InvalidKeyError) as e:
            logger.error(
                "failed_to_load_signing_key",
                extra={"kid": jwk.get("kid"), "alg": alg, "error": str(e)},
            )
            raise jwt.InvalidKeyError(f"Invalid JWK for kid={jwk.get('kid')}: {e}") from e
        raise jwt.InvalidAlgorithmError(f"Unsupported algorithm: {alg}")

    @staticmethod
    def _find_jwk(jwks: dict[str, Any], kid: str | None) -> dict[str, Any] | None:
        for key in jwks["keys"]:
            # Entries that are not JSON objects cannot be JWKs
            if isinstance(key, dict) and key.get("kid") == kid:
                return key
        return None

    async def _resolve_key(self, kid: str | None, alg: str) -> Any:
        jwk = self._find_jwk(await self.get_jwks(), kid)
        if jwk is None:
            # Key rotation: refresh JWKS cache and retry once
            logger.warning(
                "Signing key not found in JWKS cache, refreshing...", extra={"kid": kid}
            )
            jwk = self._find_jwk(await self.get_jwks(force_refresh=True), kid)

        if jwk is None:
            raise jwt.InvalidKeyError(f"Signing key with kid={kid} not found in JWKS")
        return self._load_signing_key(jwk, alg)

    async def verify(self, token: str, options: VerifyOptions) -> dict[str, Any]:
        """Validate ID token signature and claims.

        Args:
            token: JWT ID token
            options: Expected issuer/audience/algorithm/max_age/nonce

        Returns:
            Validated ID token claims

        Raises:
            jwt.PyJWTError: If the signature, key or any claim check fails
            httpx.HTTPError: If the JWKS could not be fetched
            ValueError: If the JWKS response is malformed
        """
        if not token:
            raise jwt.DecodeError("ID token is required but missing")

        header = jwt.get_unverified_header(token)
        alg = header.get("alg")

        # Algorithm pinning: header must match the configured algorithm
        if alg != options.algorithm:
            raise jwt.InvalidAlgorithmError(
                f"Signature algorithm of {alg} is not supported. Expected {options.algorithm}."
            )

        if alg in _ASYMMETRIC_ALGORITHMS:
            signing_key = await self._resolve_key(header.get("kid"), alg)
        elif alg == "HS256":
            if not self.client_secret:
                raise jwt.InvalidKeyError("HS256 verification requires a client secret")
            signing_key = self.client_secret
        else:
            raise jwt.InvalidAlgorithmError(f"Unsupported algorithm: {alg}")

        claims: dict[str, Any] = jwt.decode(
            token,
            key=signing_key,
            algorithms=[options.algorithm],
            audience=options.audience,
            issuer=options.issuer,
            leeway=options.clock_skew_seconds,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "verify_aud": True,
                "verify_iss": True,
                "require": ["iss", "sub", "aud", "exp", "iat"],
            },
        )

        self._verify_authorized_party(claims, options)
        self._verify_nonce(claims, options)
        self._verify_auth_time(claims, options)

        logger.info(
            "ID token validated successfully",
            extra={"user_id": claims.get("sub"), "alg": alg},
        )

        return claims

    @staticmethod
    def _verify_authorized_party(claims: dict[str, Any], options: VerifyOptions) -> None:
        audience = claims.get("aud")
        if isinstance(audience, list) and len(audience) > 1:
            azp = claims.get("azp")
            if not isinstance(azp, str):
                raise jwt.MissingRequiredClaimError("azp")
            if azp != options.audience:
                raise jwt.InvalidTokenError(
                    f"Authorized Party (azp) claim mismatch; expected {options.audience}, found {azp}"
                )

    @staticmethod
    def _verify_nonce(claims: dict[str, Any], options: VerifyOptions) -> None:
        # Replay protection, only when the authorization request carried a nonce
        if options.nonce is None:
            return
        token_nonce = claims.get("nonce")
        if not isinstance(token_nonce, str):
            raise jwt.MissingRequiredClaimError("nonce")
        if token_nonce != options.nonce:
            raise jwt.InvalidTokenError("Nonce (nonce) claim mismatch in the ID token")

    @staticmethod
    def _verify_auth_time(claims: dict[str, Any], options: VerifyOptions) -> None:
        if options.max_age is None:
            return
        auth_time = claims.get("auth_time")
        if not isinstance(auth_time, int | float):
            raise jwt.MissingRequiredClaimError("auth_time")
        if time.time() > auth_time + options.max_age + options.clock_skew_seconds:
            raise jwt.InvalidTokenError(
                "Authentication Time (auth_time) claim indicates that too much time has "
                "passed since the last end-user authentication"
            )


__all__ = ["IdTokenVerifier", "VerifyOptions"]
