"""
Authentication utilities for bearer token handling.

Provides helpers for extracting raw JWTs from request data before they are
handed to the verifier.
"""

from typing import Mapping

from core.exceptions import TokenMalformedError

BEARER_PREFIX = "Bearer "


def strip_bearer_prefix(raw_token: str) -> str:
    """Remove a leading "Bearer " from a raw token string.

    Only the exact, case-sensitive prefix is removed. Anything else (including
    "bearer " or "BearerExtra ") is returned unchanged and left for the
    verifier to reject.

    Args:
        raw_token: Token as presented by the caller

    Returns:
        The token without the prefix
    """
    if raw_token.startswith(BEARER_PREFIX):
        return raw_token[len(BEARER_PREFIX) :]
    return raw_token


def get_bearer_token(headers: Mapping[str, str]) -> str:
    """Extract the bearer token from request headers.

    Public helper for callers that receive raw HTTP headers; the verifier
    itself takes the token string and only strips an optional prefix. The
    raw JWT is returned without decoding or validating it.

    Args:
        headers: Request headers (any mapping; lookups try both
                 "Authorization" and "authorization")

    Returns:
        JWT token string (without "Bearer " prefix)

    Raises:
        TokenMalformedError: If the Authorization header is missing or malformed
    """
    auth_header = headers.get("Authorization") or headers.get("authorization")

    if not auth_header:
        raise TokenMalformedError("Authorization header missing")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0] != "Bearer":
        raise TokenMalformedError("Invalid Authorization header format")

    return parts[1]
