"""Random value generation for OAuth2 state and OIDC nonce parameters.

Security guarantees:
- 32 bytes (256 bits) of cryptographic randomness per value
- Base64-URL encoding per RFC 4648 Section 5, without padding, so values are
  safe to use unquoted in cookies and query strings
"""

import base64
import os


def secure_random_string(num_bytes: int = 32) -> str:
    """Generate a cryptographically random Base64-URL string.

    Args:
        num_bytes: Number of random bytes (default: 32 = 256 bits)

    Returns:
        Base64-URL encoded string without padding
    """
    random_bytes = os.urandom(num_bytes)
    return base64.urlsafe_b64encode(random_bytes).decode("utf-8").rstrip("=")


def generate_state() -> str:
    """Generate cryptographically random state for CSRF protection."""
    return secure_random_string()


def generate_nonce() -> str:
    """Generate cryptographically random nonce for ID token replay protection."""
    return secure_random_string()
