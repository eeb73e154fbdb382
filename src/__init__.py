"""
Azure AD Token Verifier - discovery-based bearer token authentication.

Verifies JWTs issued by an Azure AD (Entra ID) tenant: discovers the tenant's
issuer and signing keys from its OpenID configuration, caches them per tenant,
and validates signature, issuer, audience, algorithm and timestamps.
"""

__version__ = "0.1.0"
