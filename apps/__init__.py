"""
Apps package - FastAPI services built on the platform libraries.

This package contains:
- auth_service: OIDC relying-party login and callback endpoints
"""
