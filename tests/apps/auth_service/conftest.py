"""Shared fixtures for auth_service tests."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from libs.platform.rp_auth import (
    AuthAPIClient,
    AuthenticationController,
    RPAuthConfig,
    TokenHolder,
)


@pytest.fixture()
def exchange_code() -> AsyncMock:
    return AsyncMock(
        return_value=TokenHolder(
            access_token="exchange-at",
            id_token="exchange-idt",
            refresh_token="exchange-rt",
            token_type="Bearer",
            expires_in=86400,
        )
    )


@pytest.fixture()
def token_verifier() -> AsyncMock:
    verifier = AsyncMock()
    verifier.verify = AsyncMock(return_value={"sub": "auth0|user"})
    return verifier


@pytest.fixture()
def configure_service(
    monkeypatch: pytest.MonkeyPatch, exchange_code: AsyncMock, token_verifier: AsyncMock
) -> Callable[..., RPAuthConfig]:
    """Point the login/callback routes at a controller with mocked provider calls."""

    def _configure(**overrides) -> RPAuthConfig:
        values = {
            "domain": "tenant.example.com",
            "client_id": "client-123",
            "client_secret": "s3cret",
            "redirect_uri": "https://testserver/callback",
        }
        values.update(overrides)
        config = RPAuthConfig(**values)

        client = AuthAPIClient(config.domain, config.client_id, config.client_secret)
        client.exchange_code = exchange_code  # type: ignore[method-assign]
        controller = AuthenticationController.from_config(
            config, client=client, token_verifier=token_verifier
        )

        for module in ("login", "callback"):
            monkeypatch.setattr(f"apps.auth_service.routes.{module}.get_config", lambda: config)
            monkeypatch.setattr(
                f"apps.auth_service.routes.{module}.get_controller", lambda: controller
            )
        return config

    return _configure


@pytest.fixture()
def client() -> TestClient:
    from apps.auth_service.main import app

    return TestClient(app, base_url="https://testserver")
