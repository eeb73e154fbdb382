"""
Authentication module for Azure AD (Entra ID) bearer token verification.
"""

from .builder import ALLOWED_ALGORITHMS, VerifiedClaims, Verifier, VerifierBuilder
from .cache import ProviderCache
from .discovery import DiscoveryClient, DiscoveryDocument
from .keyset import KeySet, RemoteKeySet, StaticKeySet
from .mcp_verifier import EntraIdTokenVerifier, create_token_verifier
from .verifier import AzureTokenVerifier

__all__ = [
    "ALLOWED_ALGORITHMS",
    "AzureTokenVerifier",
    "DiscoveryClient",
    "DiscoveryDocument",
    "EntraIdTokenVerifier",
    "KeySet",
    "ProviderCache",
    "RemoteKeySet",
    "StaticKeySet",
    "VerifiedClaims",
    "Verifier",
    "VerifierBuilder",
    "create_token_verifier",
]
