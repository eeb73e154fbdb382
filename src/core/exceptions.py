"""
Exception hierarchy for Azure AD token verification.

Every failure the verification pipeline can produce is a subclass of
TokenVerifierError. Callers branch either on the exception type or on the
class-level ``kind`` string, which groups the types into the small taxonomy
exposed to consumers (e.g. all claim failures share ``kind == "ClaimInvalid"``).
"""

from typing import Optional


class TokenVerifierError(Exception):
    """
    Base exception for all token verification errors.

    Catching this class catches every failure raised by the verifier.
    """

    kind = "TokenVerifierError"


class ConfigInvalidError(TokenVerifierError):
    """
    Tenant settings are malformed.

    Raised when the tenant ID, client ID or authority endpoint is empty.
    """

    kind = "ConfigInvalid"


class DiscoveryError(TokenVerifierError):
    """Base class for OpenID discovery failures."""

    kind = "DiscoveryError"


class DiscoveryTransportError(DiscoveryError):
    """
    The metadata endpoint could not be reached.

    Raised on connection errors, TLS failures and timeouts.
    """

    kind = "DiscoveryTransportFailure"


class DiscoveryHTTPError(DiscoveryError):
    """
    The metadata endpoint answered with a non-200 status.

    Carries the status, reason phrase and a truncated response body.
    """

    kind = "DiscoveryHTTPError"

    max_body_length = 512

    def __init__(self, status: int, reason: Optional[str], body: str) -> None:
        self.status = status
        self.reason = reason or ""
        self.body = body[: self.max_body_length]
        super().__init__(f"{status} {self.reason}: {self.body}".strip())


class DiscoveryMalformedError(DiscoveryError):
    """
    The metadata document is not valid JSON or lacks issuer/jwks_uri.
    """

    kind = "DiscoveryMalformed"


class KeySetUnavailableError(TokenVerifierError):
    """
    No signing key could be obtained.

    Raised when the JWKS fetch fails, the JWKS document is malformed, or the
    requested key ID is still absent after a refresh.
    """

    kind = "KeySetUnavailable"


class TokenMalformedError(TokenVerifierError):
    """The input is not a structurally valid JWT."""

    kind = "TokenMalformed"


class AlgorithmRejectedError(TokenVerifierError):
    """The token's signing algorithm is not in the allow-list."""

    kind = "AlgorithmRejected"


class SignatureInvalidError(TokenVerifierError):
    """Cryptographic signature verification failed."""

    kind = "SignatureInvalid"


class ClaimInvalidError(TokenVerifierError):
    """
    A standard claim failed validation.

    Subclasses identify which claim; ``claim`` holds its name.
    """

    kind = "ClaimInvalid"
    claim: Optional[str] = None


class IssuerMismatchError(ClaimInvalidError):
    claim = "iss"


class AudienceMismatchError(ClaimInvalidError):
    claim = "aud"


class TokenExpiredError(ClaimInvalidError):
    claim = "exp"


class TokenNotYetValidError(ClaimInvalidError):
    claim = "nbf"


class IssuedAtInvalidError(ClaimInvalidError):
    claim = "iat"


class MissingClaimError(ClaimInvalidError):
    """A claim required for validation is absent."""

    def __init__(self, claim: str) -> None:
        self.claim = claim
        super().__init__(f"Token is missing required claim '{claim}'")
