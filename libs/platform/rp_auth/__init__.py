"""Relying-Party OIDC Authentication Library.

Server-side half of the OAuth2/OIDC Authorization Code, Implicit and Hybrid
flows: builds the authorization URL, protects it with one-time state/nonce
cookies, and turns the callback into verified tokens.

Key Components:
- AuthenticationController: Application entry point wired from RPAuthConfig
- AuthorizeUrl: Single-use authorize URL builder that stores state/nonce cookies
- RequestProcessor: Callback validation, code exchange, token verification and merge
- TransientCookieStore: One-time state/nonce cookies with SameSite handling
- IdTokenVerifier: ID token signature and claims verification (JWKS / HS256)
"""

from libs.platform.rp_auth.auth_api import AuthAPIClient, AuthorizeRequestBuilder, TokenHolder
from libs.platform.rp_auth.authorize_url import AuthorizeUrl, BuilderState
from libs.platform.rp_auth.config import RPAuthConfig
from libs.platform.rp_auth.controller import AuthenticationController
from libs.platform.rp_auth.exceptions import (
    ApiError,
    ConfigurationError,
    IdentityVerificationError,
    InvalidRequestError,
    ProviderError,
    RPAuthError,
    TokenValidationError,
)
from libs.platform.rp_auth.id_token_verifier import IdTokenVerifier, VerifyOptions
from libs.platform.rp_auth.random_values import (
    generate_nonce,
    generate_state,
    secure_random_string,
)
from libs.platform.rp_auth.request_processor import RequestProcessor
from libs.platform.rp_auth.response_type import ResponseType, parse_response_type
from libs.platform.rp_auth.tokens import Tokens, merge_tokens
from libs.platform.rp_auth.transient_cookie_store import SameSite, TransientCookieStore

__all__ = [
    # Entry points
    "AuthenticationController",
    "RPAuthConfig",
    "RequestProcessor",
    # Authorize URL
    "AuthorizeUrl",
    "BuilderState",
    "AuthAPIClient",
    "AuthorizeRequestBuilder",
    "TokenHolder",
    # Cookies
    "SameSite",
    "TransientCookieStore",
    # Tokens
    "Tokens",
    "merge_tokens",
    "ResponseType",
    "parse_response_type",
    # Verification
    "IdTokenVerifier",
    "VerifyOptions",
    # Random values
    "generate_nonce",
    "generate_state",
    "secure_random_string",
    # Errors
    "RPAuthError",
    "ConfigurationError",
    "IdentityVerificationError",
    "ProviderError",
    "InvalidRequestError",
    "TokenValidationError",
    "ApiError",
]
