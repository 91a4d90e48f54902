"""Response-type classification for authorization requests.

The response type is parsed once into flow flags; every branch in the
authorize-URL builder and the callback processor reads these flags instead of
re-splitting the raw string.
"""

from __future__ import annotations

from dataclasses import dataclass

from libs.platform.rp_auth.exceptions import ConfigurationError

CODE = "code"
ID_TOKEN = "id_token"
TOKEN = "token"

_KNOWN_VALUES = frozenset({CODE, ID_TOKEN, TOKEN})


@dataclass(frozen=True)
class ResponseType:
    """Parsed response type (e.g. "code", "id_token token", "code id_token")."""

    raw: str
    has_code: bool
    has_id_token: bool
    has_token: bool

    @property
    def uses_form_post(self) -> bool:
        """Tokens delivered on the front channel are posted back with response_mode=form_post."""
        return self.has_token or self.has_id_token

    @property
    def requires_cross_site_cookies(self) -> bool:
        """Whether the callback arrives as a cross-site POST, needing SameSite=None cookies."""
        return self.has_id_token

    def __str__(self) -> str:
        return self.raw


def parse_response_type(value: str) -> ResponseType:
    """Parse a space-separated response type into flow flags.

    Args:
        value: Response type string, e.g. "code" or "id_token token"

    Returns:
        ResponseType with has_code / has_id_token / has_token set

    Raises:
        ConfigurationError: If the value is empty or contains unknown entries
    """
    parts = (value or "").split()
    if not parts:
        raise ConfigurationError("Response type must not be empty.")

    unknown = sorted(set(parts) - _KNOWN_VALUES)
    if unknown:
        raise ConfigurationError(f"Unsupported response type value(s): {', '.join(unknown)}")

    return ResponseType(
        raw=" ".join(parts),
        has_code=CODE in parts,
        has_id_token=ID_TOKEN in parts,
        has_token=TOKEN in parts,
    )


__all__ = ["CODE", "ID_TOKEN", "TOKEN", "ResponseType", "parse_response_type"]
