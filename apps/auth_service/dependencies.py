"""Shared dependencies for the FastAPI auth service.

Uses functools.lru_cache for the singleton pattern; tests clear the caches
with get_config.cache_clear() / get_controller.cache_clear().
"""

from functools import lru_cache

from libs.platform.rp_auth import AuthenticationController, RPAuthConfig


@lru_cache
def get_config() -> RPAuthConfig:
    """Get relying-party config singleton (from OIDC_* environment variables)."""
    return RPAuthConfig.from_env()


@lru_cache
def get_controller() -> AuthenticationController:
    """Get authentication controller singleton.

    Raises:
        ConfigurationError: If the OIDC settings are incomplete
    """
    return AuthenticationController.from_config(get_config())
