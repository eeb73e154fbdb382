"""
Core module with the token verification error taxonomy.
"""

from .exceptions import (
    AlgorithmRejectedError,
    AudienceMismatchError,
    ClaimInvalidError,
    ConfigInvalidError,
    DiscoveryError,
    DiscoveryHTTPError,
    DiscoveryMalformedError,
    DiscoveryTransportError,
    IssuedAtInvalidError,
    IssuerMismatchError,
    KeySetUnavailableError,
    MissingClaimError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenMalformedError,
    TokenNotYetValidError,
    TokenVerifierError,
)

__all__ = [
    "TokenVerifierError",
    "ConfigInvalidError",
    "DiscoveryError",
    "DiscoveryTransportError",
    "DiscoveryHTTPError",
    "DiscoveryMalformedError",
    "KeySetUnavailableError",
    "TokenMalformedError",
    "AlgorithmRejectedError",
    "SignatureInvalidError",
    "ClaimInvalidError",
    "IssuerMismatchError",
    "AudienceMismatchError",
    "TokenExpiredError",
    "TokenNotYetValidError",
    "IssuedAtInvalidError",
    "MissingClaimError",
]
