"""Relying-party authentication exceptions.

Callback failures are split by how a caller should react:
- ProviderError / InvalidRequestError: restart the login flow
- TokenValidationError: security-fatal, do not trust any token from the callback
- ApiError: transport or protocol failure talking to the identity provider
- ConfigurationError: programmer error, never caused by user input
"""

# Error codes carried by IdentityVerificationError.code
INVALID_STATE_ERROR = "invalid_state"
MISSING_ID_TOKEN = "missing_id_token"
MISSING_ACCESS_TOKEN = "missing_access_token"
INVALID_EXPIRES_IN = "invalid_expires_in"
JWT_VERIFICATION_ERROR = "jwt_verification_error"
API_ERROR = "api_error"


class RPAuthError(Exception):
    """Base exception for all relying-party authentication errors."""


class ConfigurationError(RPAuthError):
    """Raised on misuse of the library: reserved parameters, builder reuse, bad config."""


class IdentityVerificationError(RPAuthError):
    """Raised when an authorization callback cannot be turned into trusted tokens.

    Attributes:
        code: Machine-readable error code (provider error code or one of the
            module-level constants)
        description: Human-readable description
    """

    def __init__(self, code: str, description: str | None = None) -> None:
        super().__init__(description or code)
        self.code = code
        self.description = description

    def is_api_error(self) -> bool:
        return self.code == API_ERROR

    def is_jwt_verification_error(self) -> bool:
        return self.code == JWT_VERIFICATION_ERROR

    def is_invalid_state_error(self) -> bool:
        return self.code == INVALID_STATE_ERROR


class ProviderError(IdentityVerificationError):
    """Raised when the identity provider returned error/error_description on the callback."""


class InvalidRequestError(IdentityVerificationError):
    """Raised on missing or mismatched state, or a token missing for the configured flow."""


class TokenValidationError(IdentityVerificationError):
    """Raised when ID token signature or claims verification fails."""

    def __init__(self, description: str = "An error occurred while trying to verify the ID Token.") -> None:
        super().__init__(JWT_VERIFICATION_ERROR, description)


class ApiError(IdentityVerificationError):
    """Raised when the call to the identity provider's token endpoint fails.

    This component does not retry; callers may apply their own policy.
    """

    def __init__(
        self, description: str = "An error occurred while exchanging the authorization code."
    ) -> None:
        super().__init__(API_ERROR, description)


__all__ = [
    "API_ERROR",
    "INVALID_EXPIRES_IN",
    "INVALID_STATE_ERROR",
    "JWT_VERIFICATION_ERROR",
    "MISSING_ACCESS_TOKEN",
    "MISSING_ID_TOKEN",
    "ApiError",
    "ConfigurationError",
    "IdentityVerificationError",
    "InvalidRequestError",
    "ProviderError",
    "RPAuthError",
    "TokenValidationError",
]
