"""Tests for authorization callback processing.

Covers the full callback sequence for the code, implicit and hybrid flows:
provider error short-circuit, one-time state/nonce consumption, front-channel
token extraction, code exchange, ID token verification and token merge.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from starlette.requests import Request
from starlette.responses import Response

from libs.platform.rp_auth.auth_api import AuthAPIClient, TokenHolder
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
from libs.platform.rp_auth.id_token_verifier import IdTokenVerifier, VerifyOptions
from libs.platform.rp_auth.request_processor import RequestProcessor
from libs.platform.rp_auth.tokens import Tokens

CALLBACK = "https://app.example.com/callback"
STATE_COOKIES = {"rp_auth.state": "s-1", "rp_auth.nonce": "n-1"}


@pytest.fixture()
def make_processor(
    auth_client: AuthAPIClient, token_verifier: AsyncMock
) -> Callable[..., RequestProcessor]:
    def _make(response_type: str = "code", max_age: int | None = None) -> RequestProcessor:
        return RequestProcessor(
            client=auth_client,
            response_type=response_type,
            verify_options=VerifyOptions(
                issuer="https://tenant.example.com/",
                audience="client-123",
                max_age=max_age,
            ),
            token_verifier=token_verifier,
        )

    return _make


class TestBuildAuthorizeUrl:
    def test_code_flow_has_no_nonce_or_form_post(
        self,
        make_processor: Callable[..., RequestProcessor],
        cookie_values: Callable[[Response], dict[str, str]],
    ) -> None:
        response = Response()

        url = make_processor("code").build_authorize_url(response, CALLBACK, "s-1", "n-1").build()

        query = parse_qs(urlparse(url).query)
        assert query["state"] == ["s-1"]
        assert "nonce" not in query
        assert "response_mode" not in query
        assert "max_age" not in query
        assert cookie_values(response) == {"rp_auth.state": "s-1"}

    @pytest.mark.parametrize("response_type", ["id_token", "id_token token", "code id_token"])
    def test_id_token_flows_get_nonce_and_form_post(
        self,
        make_processor: Callable[..., RequestProcessor],
        cookie_values: Callable[[Response], dict[str, str]],
        response_type: str,
    ) -> None:
        response = Response()

        url = (
            make_processor(response_type)
            .build_authorize_url(response, CALLBACK, "s-1", "n-1")
            .build()
        )

        query = parse_qs(urlparse(url).query)
        assert query["nonce"] == ["n-1"]
        assert query["response_mode"] == ["form_post"]
        assert query["response_type"] == [response_type]
        assert cookie_values(response)["rp_auth.nonce"] == "n-1"

    def test_token_flow_gets_form_post_without_nonce(
        self, make_processor: Callable[..., RequestProcessor]
    ) -> None:
        url = make_processor("code token").build_authorize_url(
            Response(), CALLBACK, "s-1", "n-1"
        ).build()

        query = parse_qs(urlparse(url).query)
        assert query["response_mode"] == ["form_post"]
        assert "nonce" not in query

    def test_max_age_forwarded(self, make_processor: Callable[..., RequestProcessor]) -> None:
        url = make_processor("code", max_age=3600).build_authorize_url(
            Response(), CALLBACK, "s-1", None
        ).build()

        assert parse_qs(urlparse(url).query)["max_age"] == ["3600"]


class TestProviderError:
    @pytest.mark.asyncio()
    async def test_error_short_circuits_before_state_validation(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        set_cookies: Callable[[Response], list[str]],
        token_verifier: AsyncMock,
    ) -> None:
        request = make_request(
            query={"error": "access_denied", "error_description": "User cancelled"}
        )
        response = Response()

        with pytest.raises(ProviderError) as exc_info:
            await make_processor("code").process(request, response)

        assert exc_info.value.code == "access_denied"
        assert exc_info.value.description == "User cancelled"
        assert set_cookies(response) == []
        token_verifier.verify.assert_not_awaited()


class TestStateValidation:
    @pytest.mark.asyncio()
    async def test_state_mismatch_expires_state_and_nonce(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        expired_cookies: Callable[[Response], set[str]],
        auth_client: AuthAPIClient,
    ) -> None:
        request = make_request(query={"state": "attacker", "code": "abc"}, cookies=STATE_COOKIES)
        response = Response()

        with pytest.raises(InvalidRequestError) as exc_info:
            await make_processor("code").process(request, response)

        assert exc_info.value.code == INVALID_STATE_ERROR
        assert exc_info.value.is_invalid_state_error()
        assert expired_cookies(response) == {
            "rp_auth.state",
            "_rp_auth.state",
            "rp_auth.nonce",
            "_rp_auth.nonce",
        }
        auth_client.exchange_code.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_missing_state_cookie_rejected(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
    ) -> None:
        request = make_request(query={"state": "s-1", "code": "abc"})

        with pytest.raises(InvalidRequestError) as exc_info:
            await make_processor("code").process(request, Response())

        assert exc_info.value.code == INVALID_STATE_ERROR

    @pytest.mark.asyncio()
    async def test_missing_state_parameter_rejected(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
    ) -> None:
        request = make_request(query={"code": "abc"}, cookies=STATE_COOKIES)

        with pytest.raises(InvalidRequestError):
            await make_processor("code").process(request, Response())

    @pytest.mark.asyncio()
    async def test_state_read_from_legacy_cookie(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        token_verifier: AsyncMock,
    ) -> None:
        request = make_request(
            method="POST",
            cookies={"_rp_auth.state": "s-1", "_rp_auth.nonce": "n-1"},
            form={"state": "s-1", "id_token": "front-idt"},
        )

        tokens = await make_processor("id_token").process(request, Response())

        assert tokens.id_token == "front-idt"
        assert token_verifier.verify.await_args.args[1].nonce == "n-1"


class TestImplicitFlow:
    @pytest.mark.asyncio()
    async def test_form_post_success(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        expired_cookies: Callable[[Response], set[str]],
        token_verifier: AsyncMock,
        auth_client: AuthAPIClient,
    ) -> None:
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={
                "state": "s-1",
                "id_token": "front-idt",
                "access_token": "front-at",
                "token_type": "Bearer",
                "expires_in": "7200",
            },
        )
        response = Response()
        processor = make_processor("id_token token")

        tokens = await processor.process(request, response)

        assert tokens == Tokens(
            access_token="front-at",
            id_token="front-idt",
            token_type="Bearer",
            expires_in=7200,
        )
        token_verifier.verify.assert_awaited_once()
        token, options = token_verifier.verify.await_args.args
        assert token == "front-idt"
        assert options.nonce == "n-1"
        # Shared options are never mutated
        assert processor.verify_options.nonce is None
        auth_client.exchange_code.assert_not_awaited()
        assert {"rp_auth.state", "rp_auth.nonce"} <= expired_cookies(response)

    @pytest.mark.asyncio()
    async def test_form_values_take_precedence_over_query(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
    ) -> None:
        request = make_request(
            method="POST",
            query={"state": "stale", "id_token": "query-idt"},
            cookies=STATE_COOKIES,
            form={"state": "s-1", "id_token": "form-idt"},
        )

        tokens = await make_processor("id_token").process(request, Response())

        assert tokens.id_token == "form-idt"

    @pytest.mark.asyncio()
    async def test_missing_id_token(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        expired_cookies: Callable[[Response], set[str]],
    ) -> None:
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={"state": "s-1", "access_token": "front-at"},
        )
        response = Response()

        with pytest.raises(InvalidRequestError) as exc_info:
            await make_processor("id_token token").process(request, response)

        assert exc_info.value.code == MISSING_ID_TOKEN
        assert "rp_auth.nonce" in expired_cookies(response)

    @pytest.mark.asyncio()
    async def test_missing_access_token(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
    ) -> None:
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={"state": "s-1", "id_token": "front-idt"},
        )

        with pytest.raises(InvalidRequestError) as exc_info:
            await make_processor("id_token token").process(request, Response())

        assert exc_info.value.code == MISSING_ACCESS_TOKEN

    @pytest.mark.asyncio()
    async def test_non_integer_expires_in(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
    ) -> None:
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={
                "state": "s-1",
                "id_token": "front-idt",
                "access_token": "front-at",
                "expires_in": "soon",
            },
        )

        with pytest.raises(InvalidRequestError) as exc_info:
            await make_processor("id_token token").process(request, Response())

        assert exc_info.value.code == INVALID_EXPIRES_IN

    @pytest.mark.asyncio()
    async def test_verification_failure(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        token_verifier: AsyncMock,
    ) -> None:
        token_verifier.verify.side_effect = jwt.InvalidAudienceError("Audience doesn't match")
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={"state": "s-1", "id_token": "front-idt"},
        )

        with pytest.raises(TokenValidationError) as exc_info:
            await make_processor("id_token").process(request, Response())

        assert exc_info.value.is_jwt_verification_error()
        assert isinstance(exc_info.value.__cause__, jwt.InvalidAudienceError)


class TestCodeFlow:
    @pytest.mark.asyncio()
    async def test_code_exchange_success(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
        token_verifier: AsyncMock,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(
            access_token="exchange-at",
            id_token="exchange-idt",
            refresh_token="exchange-rt",
            token_type="Bearer",
            expires_in=86400,
        )
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        tokens = await make_processor("code").process(request, Response())

        assert tokens == Tokens(
            access_token="exchange-at",
            id_token="exchange-idt",
            refresh_token="exchange-rt",
            token_type="Bearer",
            expires_in=86400,
        )
        auth_client.exchange_code.assert_awaited_once_with("abc", CALLBACK)
        token_verifier.verify.assert_awaited_once()
        assert token_verifier.verify.await_args.args[0] == "exchange-idt"

    @pytest.mark.asyncio()
    async def test_explicit_redirect_uri_used_for_exchange(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(access_token="exchange-at")
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        await make_processor("code").process(
            request, Response(), redirect_uri="https://public.example.com/callback"
        )

        auth_client.exchange_code.assert_awaited_once_with(
            "abc", "https://public.example.com/callback"
        )

    @pytest.mark.asyncio()
    async def test_exchange_without_id_token_skips_verification(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
        token_verifier: AsyncMock,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(access_token="exchange-at")
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        tokens = await make_processor("code").process(request, Response())

        assert tokens.access_token == "exchange-at"
        token_verifier.verify.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_exchange_http_error_becomes_api_error(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
    ) -> None:
        token_request = httpx.Request("POST", "https://tenant.example.com/oauth/token")
        auth_client.exchange_code.side_effect = httpx.HTTPStatusError(
            "Forbidden", request=token_request, response=httpx.Response(403, request=token_request)
        )
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        with pytest.raises(ApiError) as exc_info:
            await make_processor("code").process(request, Response())

        assert exc_info.value.is_api_error()
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio()
    async def test_exchange_network_error_becomes_api_error(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
    ) -> None:
        auth_client.exchange_code.side_effect = httpx.ConnectError("connection refused")
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        with pytest.raises(ApiError):
            await make_processor("code").process(request, Response())

    @pytest.mark.asyncio()
    async def test_missing_code_becomes_api_error(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
    ) -> None:
        request = make_request(query={"state": "s-1"}, cookies=STATE_COOKIES)

        with pytest.raises(ApiError):
            await make_processor("code").process(request, Response())

        auth_client.exchange_code.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_exchanged_id_token_verification_failure(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
        token_verifier: AsyncMock,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(
            access_token="exchange-at", id_token="exchange-idt"
        )
        token_verifier.verify.side_effect = jwt.ExpiredSignatureError("Signature has expired")
        request = make_request(query={"state": "s-1", "code": "abc"}, cookies=STATE_COOKIES)

        with pytest.raises(TokenValidationError):
            await make_processor("code").process(request, Response())


class TestHybridFlow:
    @pytest.mark.asyncio()
    async def test_front_channel_id_token_kept(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
        token_verifier: AsyncMock,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(
            access_token="exchange-at",
            id_token="exchange-idt",
            refresh_token="exchange-rt",
            token_type="Bearer",
            expires_in=86400,
        )
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={"state": "s-1", "code": "abc", "id_token": "front-idt"},
        )

        tokens = await make_processor("code id_token").process(request, Response())

        assert tokens.id_token == "front-idt"
        assert tokens.access_token == "exchange-at"
        assert tokens.refresh_token == "exchange-rt"
        # Only the front-channel ID token is verified
        token_verifier.verify.assert_awaited_once()
        assert token_verifier.verify.await_args.args[0] == "front-idt"

    @pytest.mark.asyncio()
    async def test_front_channel_verified_before_exchange(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
        token_verifier: AsyncMock,
    ) -> None:
        token_verifier.verify.side_effect = jwt.InvalidSignatureError("bad signature")
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={"state": "s-1", "code": "abc", "id_token": "front-idt"},
        )

        with pytest.raises(TokenValidationError):
            await make_processor("code id_token").process(request, Response())

        auth_client.exchange_code.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_exchange_without_access_token_falls_back_to_front_channel(
        self,
        make_processor: Callable[..., RequestProcessor],
        make_request: Callable[..., Request],
        auth_client: AuthAPIClient,
    ) -> None:
        auth_client.exchange_code.return_value = TokenHolder(id_token="exchange-idt")
        request = make_request(
            method="POST",
            cookies=STATE_COOKIES,
            form={
                "state": "s-1",
                "code": "abc",
                "id_token": "front-idt",
                "access_token": "front-at",
                "token_type": "Bearer",
                "expires_in": "300",
            },
        )

        tokens = await make_processor("code id_token token").process(request, Response())

        assert tokens == Tokens(
            access_token="front-at",
            id_token="front-idt",
            token_type="Bearer",
            expires_in=300,
        )


class TestJWKSFailures:
    JWKS_URL = "https://tenant.example.com/.well-known/jwks.json"

    @pytest.fixture()
    def verifying_processor(self, auth_client: AuthAPIClient) -> RequestProcessor:
        return RequestProcessor(
            client=auth_client,
            response_type="id_token",
            verify_options=VerifyOptions(
                issuer="https://tenant.example.com/", audience="client-123"
            ),
            token_verifier=IdTokenVerifier(domain="tenant.example.com"),
        )

    @pytest.fixture()
    def rs256_callback(self, make_request: Callable[..., Request]) -> Request:
        signing_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        id_token = jwt.encode(
            {"sub": "auth0|user"}, signing_key, algorithm="RS256", headers={"kid": "k"}
        )
        return make_request(
            method="POST", cookies=STATE_COOKIES, form={"state": "s-1", "id_token": id_token}
        )

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "body", [[{"kid": "k"}], {"keys": "oops"}], ids=["list-body", "keys-not-list"]
    )
    async def test_malformed_jwks_becomes_api_error(
        self,
        verifying_processor: RequestProcessor,
        rs256_callback: Request,
        respx_mock,
        body,
    ) -> None:
        respx_mock.get(self.JWKS_URL).mock(return_value=httpx.Response(200, json=body))

        with pytest.raises(ApiError) as exc_info:
            await verifying_processor.process(rs256_callback, Response())

        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio()
    async def test_jwks_without_object_entries_becomes_token_validation_error(
        self,
        verifying_processor: RequestProcessor,
        rs256_callback: Request,
        respx_mock,
    ) -> None:
        respx_mock.get(self.JWKS_URL).mock(
            return_value=httpx.Response(200, json={"keys": [1]})
        )

        with pytest.raises(TokenValidationError) as exc_info:
            await verifying_processor.process(rs256_callback, Response())

        assert isinstance(exc_info.value.__cause__, jwt.InvalidKeyError)
