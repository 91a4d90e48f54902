"""Authorization callback processing.

process() runs the callback through a fixed sequence; each step is a hard
precondition for the next:
1. Provider error check (error / error_description)
2. State validation against the one-time state cookie (CSRF anchor)
3. Front-channel token extraction (access_token, id_token, token_type, expires_in)
4. Presence checks for the tokens the response type promises
5. One-time nonce retrieval into per-request verification options
6. ID token verification and authorization code exchange
7. Merge of front-channel and code-exchange tokens

References:
- OAuth2: RFC 6749 Section 4.1.2 / 4.2.2
- OIDC Hybrid flow: https://openid.net/specs/openid-connect-core-1_0.html#HybridFlowAuth
- Form post response mode: https://openid.net/specs/oauth-v2-form-post-response-mode-1_0.html
"""

import logging
from collections.abc import Mapping

import httpx
import jwt
from starlette.requests import Request
from starlette.responses import Response

from libs.platform.rp_auth.authorize_url import AuthorizeUrl
from libs.platform.rp_auth.exceptions import (
    INVALID_EXPIRES_IN,
    INVALID_STATE_ERROR,
    MISSING_ACCESS_TOKEN,
    MISSING_ID_TOKEN,
    ApiError,
    InvalidRequestError,
    ProviderError,
    TokenValidationError,
)
from libs.platform.rp_auth.id_token_verifier import VerifyOptions
from libs.platform.rp_auth.protocols import AuthenticationClient, TokenVerifier
from libs.platform.rp_auth.response_type import ResponseType, parse_response_type
from libs.platform.rp_auth.tokens import Tokens, merge_tokens
from libs.platform.rp_auth.transient_cookie_store import TransientCookieStore

logger = logging.getLogger(__name__)

KEY_STATE = "state"
KEY_ERROR = "error"
KEY_ERROR_DESCRIPTION = "error_description"
KEY_EXPIRES_IN = "expires_in"
KEY_ACCESS_TOKEN = "access_token"
KEY_ID_TOKEN = "id_token"
KEY_TOKEN_TYPE = "token_type"
KEY_CODE = "code"
KEY_RESPONSE_MODE = "response_mode"
KEY_FORM_POST = "form_post"
KEY_MAX_AGE = "max_age"


class RequestProcessor:
    """Turns an authorization callback into verified Tokens."""

    def __init__(
        self,
        client: AuthenticationClient,
        response_type: str,
        verify_options: VerifyOptions,
        token_verifier: TokenVerifier,
        cookie_store: TransientCookieStore | None = None,
        legacy_same_site_cookie: bool = True,
    ):
        """Initialize request processor.

        Args:
            client: Identity provider client (authorize URL + code exchange)
            response_type: Space-separated response type, e.g. "code" or "id_token token"
            verify_options: Static ID token expectations; nonce is filled per request
            token_verifier: ID token verifier
            cookie_store: Transient cookie store for state/nonce
            legacy_same_site_cookie: Whether legacy fallback cookies are written and read
        """
        self.client = client
        self.response_type: ResponseType = parse_response_type(response_type)
        self.verify_options = verify_options
        self.token_verifier = token_verifier
        self.cookie_store = cookie_store or TransientCookieStore()
        self.legacy_same_site_cookie = legacy_same_site_cookie

    def build_authorize_url(
        self,
        response: Response,
        redirect_uri: str,
        state: str,
        nonce: str | None,
    ) -> AuthorizeUrl:
        """Pre-build an authorize URL with state, nonce and flow-dependent parameters.

        Args:
            response: Response that will receive the state/nonce cookies
            redirect_uri: Callback URL
            state: Random state value
            nonce: Random nonce, used only when the response type contains id_token

        Returns:
            AuthorizeUrl for further customization before build()
        """
        authorize_url = (
            AuthorizeUrl(
                self.client,
                response,
                redirect_uri,
                self.response_type.raw,
                cookie_store=self.cookie_store,
            )
            .with_state(state)
            .with_legacy_same_site_cookie(self.legacy_same_site_cookie)
        )

        if self.response_type.has_id_token and nonce is not None:
            authorize_url.with_nonce(nonce)
        if self.response_type.uses_form_post:
            authorize_url.with_parameter(KEY_RESPONSE_MODE, KEY_FORM_POST)
        if self.verify_options.max_age is not None:
            authorize_url.with_parameter(KEY_MAX_AGE, str(self.verify_options.max_age))

        return authorize_url

    async def process(
        self,
        request: Request,
        response: Response,
        redirect_uri: str | None = None,
    ) -> Tokens:
        """Validate the callback and return the verified, merged tokens.

        Args:
            request: Callback request (query string, or form body for form_post)
            response: Response that receives the expiring state/nonce cookies
            redirect_uri: Redirect URI for the code exchange; defaults to the
                callback URL without its query string

        Returns:
            Tokens from the front channel and/or the code exchange

        Raises:
            ProviderError: The provider returned an error on the callback
            InvalidRequestError: State mismatch or a token missing for the flow
            TokenValidationError: ID token verification failed
            ApiError: The code exchange call failed
        """
        params = await self._callback_parameters(request)

        self._assert_no_error(params)

        try:
            self._assert_valid_state(request, response, params)
            front_channel = self._front_channel_tokens(params)
            self._assert_expected_tokens(front_channel)
        except InvalidRequestError:
            # A rejected callback must not leave a usable nonce behind
            self.cookie_store.get_nonce(request, response, self.legacy_same_site_cookie)
            raise

        # Nonce is dynamic per authorization attempt
        nonce = self.cookie_store.get_nonce(request, response, self.legacy_same_site_cookie)
        options = self.verify_options.with_nonce(nonce)

        if redirect_uri is None:
            redirect_uri = str(request.url.replace(query="", fragment=""))

        return await self._verified_tokens(params, front_channel, options, redirect_uri)

    async def _verified_tokens(
        self,
        params: Mapping[str, str],
        front_channel: Tokens,
        options: VerifyOptions,
        redirect_uri: str,
    ) -> Tokens:
        code_exchange: Tokens | None = None

        try:
            if self.response_type.has_id_token:
                # Implicit/Hybrid flow: verify the front-channel ID token before anything else.
                # Presence is checked in _assert_expected_tokens; "" fails closed.
                await self.token_verifier.verify(front_channel.id_token or "", options)

            if self.response_type.has_code:
                code_exchange = await self._exchange_code(params.get(KEY_CODE), redirect_uri)
                if not self.response_type.has_id_token and code_exchange.id_token is not None:
                    # Pure code flow; a front-channel ID token was never verified
                    await self.token_verifier.verify(code_exchange.id_token, options)
        except jwt.PyJWTError as e:
            logger.error("ID token verification failed", extra={"error": str(e)})
            raise TokenValidationError() from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Token exchange failed: HTTP {e.response.status_code}")
            raise ApiError() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Token exchange error: {e}")
            raise ApiError() from e

        tokens = merge_tokens(front_channel, code_exchange)

        logger.info(
            "Authorization callback processed",
            extra={
                "response_type": self.response_type.raw,
                "code_exchange": code_exchange is not None,
                "has_refresh_token": tokens.refresh_token is not None,
            },
        )

        return tokens

    async def _exchange_code(self, code: str | None, redirect_uri: str) -> Tokens:
        if not code:
            raise ValueError("Authorization code is missing from the response")
        holder = await self.client.exchange_code(code, redirect_uri)
        return Tokens(
            access_token=holder.access_token,
            id_token=holder.id_token,
            refresh_token=holder.refresh_token,
            token_type=holder.token_type,
            expires_in=holder.expires_in,
        )

    @staticmethod
    async def _callback_parameters(request: Request) -> dict[str, str]:
        """Collect callback parameters from the query string and a form_post body."""
        params = {key: value for key, value in request.query_params.items()}
        if request.method == "POST":
            form = await request.form()
            for key, value in form.items():
                if isinstance(value, str):
                    params[key] = value
        return params

    @staticmethod
    def _assert_no_error(params: Mapping[str, str]) -> None:
        error = params.get(KEY_ERROR)
        if error is not None:
            description = params.get(KEY_ERROR_DESCRIPTION)
            logger.warning(
                "Identity provider returned an error",
                extra={"error": error, "error_description": description},
            )
            raise ProviderError(error, description)

    def _assert_valid_state(
        self, request: Request, response: Response, params: Mapping[str, str]
    ) -> None:
        state_from_request = params.get(KEY_STATE)
        expected_state = self.cookie_store.get_state(
            request, response, self.legacy_same_site_cookie
        )

        if expected_state is None or state_from_request != expected_state:
            logger.warning(
                "State validation failed",
                extra={
                    "state": (state_from_request or "")[:8] + "...",
                    "stored_state_present": expected_state is not None,
                },
            )
            raise InvalidRequestError(
                INVALID_STATE_ERROR, "The received state doesn't match the expected one."
            )

    @staticmethod
    def _front_channel_tokens(params: Mapping[str, str]) -> Tokens:
        raw_expires_in = params.get(KEY_EXPIRES_IN)
        expires_in: int | None = None
        if raw_expires_in is not None:
            try:
                expires_in = int(raw_expires_in)
            except ValueError as e:
                raise InvalidRequestError(
                    INVALID_EXPIRES_IN, "The expires_in parameter is not an integer."
                ) from e

        return Tokens(
            access_token=params.get(KEY_ACCESS_TOKEN),
            id_token=params.get(KEY_ID_TOKEN),
            token_type=params.get(KEY_TOKEN_TYPE),
            expires_in=expires_in,
        )

    def _assert_expected_tokens(self, front_channel: Tokens) -> None:
        if self.response_type.has_id_token and front_channel.id_token is None:
            raise InvalidRequestError(MISSING_ID_TOKEN, "ID Token is missing from the response.")
        if self.response_type.has_token and front_channel.access_token is None:
            raise InvalidRequestError(
                MISSING_ACCESS_TOKEN, "Access Token is missing from the response."
            )


__all__ = ["RequestProcessor"]
