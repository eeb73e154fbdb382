"""
Verifier construction and JWT validation.

A Verifier bundles the trust parameters for one tenant configuration: the
issuer taken from the discovery document, the expected audience (the
caller's client ID), the allowed signing algorithms and the key set. It is
immutable once built and can verify any number of tokens.

Validation order:
1. Decode the header; structurally invalid tokens are rejected
2. Reject algorithms outside the allow-list before any key lookup
3. Resolve the signing key by key ID
4. Verify the signature (PyJWT)
5. Check iss, aud, exp, nbf and iat against the verifier's clock
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import jwt
from pydantic import BaseModel, ConfigDict

from auth.discovery import DiscoveryDocument
from auth.keyset import KeySet
from config.settings import TenantSettings
from core.exceptions import (
    AlgorithmRejectedError,
    AudienceMismatchError,
    IssuedAtInvalidError,
    IssuerMismatchError,
    MissingClaimError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenMalformedError,
    TokenNotYetValidError,
)

logger = logging.getLogger(__name__)

# RS256 only, to rule out algorithm confusion (e.g. HS256 keyed with the
# RSA public key, or "none").
ALLOWED_ALGORITHMS = ("RS256",)

# Tolerance for issuer clocks running ahead of ours when checking nbf and iat.
# Expiry is not softened by it.
DEFAULT_NOT_BEFORE_SKEW = 300.0

# Claim checks are done here against an injectable clock, so PyJWT only
# verifies the signature.
_SIGNATURE_ONLY = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class VerifiedClaims(BaseModel):
    """Decoded and validated token payload."""

    model_config = ConfigDict(frozen=True)

    issuer: str
    audience: list[str]
    subject: Optional[str] = None
    expires_at: float
    issued_at: Optional[float] = None
    not_before: Optional[float] = None
    claims: Dict[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        return self.claims.get(name, default)

    @property
    def object_id(self) -> Optional[str]:
        """Azure AD object ID of the principal (``oid``)."""
        return self.claims.get("oid")

    @property
    def tenant_id(self) -> Optional[str]:
        """Tenant the token was issued in (``tid``)."""
        return self.claims.get("tid")

    @property
    def scopes(self) -> list[str]:
        """Delegated scopes from ``scp``, or application roles from ``roles``."""
        scp = self.claims.get("scp")
        if isinstance(scp, str) and scp.strip():
            return scp.split()
        roles = self.claims.get("roles")
        if isinstance(roles, list):
            return [str(role) for role in roles if role]
        return []


@dataclass(frozen=True)
class Verifier:
    """Immutable token verifier bound to one issuer and audience."""

    issuer: str
    audience: str
    key_set: KeySet
    algorithms: tuple[str, ...] = ALLOWED_ALGORITHMS
    leeway: float = 0.0
    not_before_skew: float = DEFAULT_NOT_BEFORE_SKEW
    clock: Callable[[], float] = field(default=time.time, repr=False)

    async def verify(self, token: str) -> VerifiedClaims:
        """Verify a raw JWT and return its claims.

        Args:
            token: Compact-serialised JWT, without any "Bearer " prefix

        Returns:
            VerifiedClaims on success

        Raises:
            TokenMalformedError: If the token cannot be decoded or has no kid
            AlgorithmRejectedError: If the header algorithm is not allowed
            KeySetUnavailableError: If the signing key cannot be resolved
            SignatureInvalidError: If the signature does not verify
            ClaimInvalidError: If iss, aud, exp, nbf or iat is invalid
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise TokenMalformedError(f"Token header could not be decoded: {e}") from e

        algorithm = header.get("alg")
        if algorithm not in self.algorithms:
            raise AlgorithmRejectedError(
                f"Signing algorithm {algorithm!r} is not allowed. "
                f"Expected one of: {', '.join(self.algorithms)}"
            )

        kid = header.get("kid")
        if not kid or not isinstance(kid, str):
            raise TokenMalformedError("Token header is missing 'kid'")

        key = await self.key_set.get_key(kid)

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=list(self.algorithms),
                options=_SIGNATURE_ONLY,
            )
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalidError("Token signature verification failed") from e
        except jwt.InvalidAlgorithmError as e:
            raise AlgorithmRejectedError(str(e)) from e
        except jwt.InvalidKeyError as e:
            raise SignatureInvalidError(f"Signing key cannot verify token: {e}") from e
        except jwt.PyJWTError as e:
            raise TokenMalformedError(f"Token could not be decoded: {e}") from e

        return self._validate_claims(payload)

    def _validate_claims(self, payload: Dict[str, Any]) -> VerifiedClaims:
        now = self.clock()

        issuer = payload.get("iss")
        if issuer != self.issuer:
            raise IssuerMismatchError(
                f"Invalid issuer {issuer!r}. Expected: {self.issuer}"
            )

        aud = payload.get("aud")
        audience = [aud] if isinstance(aud, str) else aud
        if not isinstance(audience, list) or self.audience not in audience:
            raise AudienceMismatchError(
                f"Invalid audience {aud!r}. Expected: {self.audience}"
            )

        exp = payload.get("exp")
        if exp is None:
            raise MissingClaimError("exp")
        if not _is_number(exp):
            raise TokenExpiredError(f"Expiration claim {exp!r} is not a number")
        if now >= exp + self.leeway:
            raise TokenExpiredError(f"Token expired at {exp}")

        nbf = payload.get("nbf")
        if nbf is not None:
            if not _is_number(nbf):
                raise TokenNotYetValidError(f"Not-before claim {nbf!r} is not a number")
            if now + self.not_before_skew < nbf:
                raise TokenNotYetValidError(f"Token is not valid before {nbf}")

        iat = payload.get("iat")
        if iat is not None:
            if not _is_number(iat):
                raise IssuedAtInvalidError(f"Issued-at claim {iat!r} is not a number")
            if iat > now + self.not_before_skew:
                raise IssuedAtInvalidError(f"Token issued in the future at {iat}")

        subject = payload.get("sub")
        return VerifiedClaims(
            issuer=issuer,
            audience=[str(item) for item in audience],
            subject=str(subject) if subject is not None else None,
            expires_at=exp,
            issued_at=iat,
            not_before=nbf,
            claims=payload,
        )


class VerifierBuilder:
    """Builds Verifiers from discovery documents. Performs no I/O."""

    def __init__(
        self,
        key_set_factory: Callable[[str], KeySet],
        leeway: float = 0.0,
        not_before_skew: float = DEFAULT_NOT_BEFORE_SKEW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the builder.

        Args:
            key_set_factory: Creates a key set for a JWKS URL
            leeway: Seconds of clock skew tolerated for exp
            not_before_skew: Seconds an issuer clock may run ahead for nbf/iat
            clock: Wall clock used for claim validation
        """
        self._key_set_factory = key_set_factory
        self._leeway = leeway
        self._not_before_skew = not_before_skew
        self._clock = clock

    def build(self, document: DiscoveryDocument, settings: TenantSettings) -> Verifier:
        """Bind the discovered issuer and key set to the caller's audience."""
        verifier = Verifier(
            issuer=document.issuer,
            audience=settings.client_id,
            key_set=self._key_set_factory(document.jwks_uri),
            algorithms=ALLOWED_ALGORITHMS,
            leeway=self._leeway,
            not_before_skew=self._not_before_skew,
            clock=self._clock,
        )
        logger.debug(
            f"Built verifier for issuer {verifier.issuer}, audience {verifier.audience}"
        )
        return verifier
