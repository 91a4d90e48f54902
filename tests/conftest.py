"""
Root conftest for tests.

This ensures:
1. OIDC_* settings from the developer's shell never leak into tests
2. The auth_service dependency singletons start empty for every test
"""

import os
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def _isolate_oidc_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("OIDC_"):
            monkeypatch.delenv(name)

    from apps.auth_service import dependencies

    dependencies.get_config.cache_clear()
    dependencies.get_controller.cache_clear()
    yield
    dependencies.get_config.cache_clear()
    dependencies.get_controller.cache_clear()
