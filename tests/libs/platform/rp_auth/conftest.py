"""Shared fixtures for rp_auth tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock
from urllib.parse import urlencode

import pytest
from starlette.requests import Request
from starlette.responses import Response

from libs.platform.rp_auth.auth_api import AuthAPIClient

DOMAIN = "tenant.example.com"
CLIENT_ID = "client-123"
CLIENT_SECRET = "client-secret-value-for-hs256-tests"


def _build_request(
    method: str = "GET",
    query: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
    form: dict[str, str] | None = None,
    path: str = "/callback",
) -> Request:
    """Build a Starlette request for https://app.example.com<path>."""
    headers = [(b"host", b"app.example.com")]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        headers.append((b"cookie", cookie_header.encode("latin-1")))

    body = b""
    if form is not None:
        body = urlencode(form).encode()
        headers.append((b"content-type", b"application/x-www-form-urlencoded"))
        headers.append((b"content-length", str(len(body)).encode()))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "https",
        "server": ("app.example.com", 443),
        "path": path,
        "root_path": "",
        "query_string": urlencode(query or {}).encode(),
        "headers": headers,
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def _set_cookie_headers(response: Response) -> list[str]:
    """All Set-Cookie header values on a response, in order."""
    return [
        value.decode("latin-1")
        for header, value in response.raw_headers
        if header == b"set-cookie"
    ]


def _cookie_values(response: Response) -> dict[str, str]:
    """Name -> value for cookies set (not expired) on a response."""
    values: dict[str, str] = {}
    for header in _set_cookie_headers(response):
        if "Max-Age=0" in header:
            continue
        name, _, rest = header.partition("=")
        values[name] = rest.split(";", 1)[0]
    return values


def _expired_cookie_names(response: Response) -> set[str]:
    return {
        header.partition("=")[0]
        for header in _set_cookie_headers(response)
        if "Max-Age=0" in header
    }


@pytest.fixture()
def make_request() -> Callable[..., Request]:
    return _build_request


@pytest.fixture()
def auth_client() -> AuthAPIClient:
    """Real authorize-URL assembly; exchange_code replaced with an AsyncMock."""
    client = AuthAPIClient(domain=DOMAIN, client_id=CLIENT_ID, client_secret=CLIENT_SECRET)
    client.exchange_code = AsyncMock()  # type: ignore[method-assign]
    return client


@pytest.fixture()
def token_verifier() -> AsyncMock:
    verifier = AsyncMock()
    verifier.verify = AsyncMock(return_value={"sub": "auth0|user"})
    return verifier


@pytest.fixture()
def set_cookies() -> Callable[[Response], list[str]]:
    return _set_cookie_headers


@pytest.fixture()
def cookie_values() -> Callable[[Response], dict[str, str]]:
    return _cookie_values


@pytest.fixture()
def expired_cookies() -> Callable[[Response], set[str]]:
    return _expired_cookie_names
