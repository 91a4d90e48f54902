"""Token set returned by a processed callback, and the front/back channel merge policy.

Merge precedence when a code exchange happened:

| Field                          | Source                                       |
|--------------------------------|----------------------------------------------|
| access_token, token_type,      | code exchange; front channel if the exchange |
| expires_in                     | returned no access token                     |
| id_token                       | front channel; code exchange otherwise       |
| refresh_token                  | code exchange only                           |
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Tokens(BaseModel):
    """Immutable set of tokens obtained from an authorization callback."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None


def merge_tokens(front_channel: Tokens, code_exchange: Tokens | None) -> Tokens:
    """Combine front-channel and code-exchange tokens into the best version of each.

    Args:
        front_channel: Tokens read from the callback parameters
        code_exchange: Tokens returned by the code exchange, or None if no exchange happened

    Returns:
        New Tokens instance; the front-channel set unchanged when there was no exchange
    """
    if code_exchange is None:
        return front_channel

    if code_exchange.access_token is not None:
        access_source = code_exchange
    else:
        access_source = front_channel

    id_token = (
        front_channel.id_token if front_channel.id_token is not None else code_exchange.id_token
    )

    return Tokens(
        access_token=access_source.access_token,
        id_token=id_token,
        refresh_token=code_exchange.refresh_token,
        token_type=access_source.token_type,
        expires_in=access_source.expires_in,
    )


__all__ = ["Tokens", "merge_tokens"]
