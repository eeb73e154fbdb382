"""
Configuration module for the token verifier.
"""

from .settings import (
    DEFAULT_AUTHORITY_ENDPOINT,
    DEFAULT_USER_AGENT,
    TenantSettings,
    VerifierConfig,
    get_verifier_config,
    reset_config,
)

__all__ = [
    "DEFAULT_AUTHORITY_ENDPOINT",
    "DEFAULT_USER_AGENT",
    "TenantSettings",
    "VerifierConfig",
    "get_verifier_config",
    "reset_config",
]
