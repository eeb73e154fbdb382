"""
Utilities module for the token verifier.
"""

from .auth_utils import BEARER_PREFIX, get_bearer_token, strip_bearer_prefix

__all__ = [
    "BEARER_PREFIX",
    "get_bearer_token",
    "strip_bearer_prefix",
]
