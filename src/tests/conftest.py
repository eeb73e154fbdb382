"""
Test configuration for token verifier tests.

Provides shared fixtures for:
- RSA key pairs for signing test JWTs
- JWKS and discovery documents built from those keys
- Test token generation
- A fake aiohttp session that routes GETs by URL and records calls
"""

import asyncio
import base64
import json
import os
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Tuple
from unittest.mock import AsyncMock

import jwt
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Add the source root to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))


# =============================================================================
# Test Constants
# =============================================================================

TEST_TENANT_ID = "test-tenant-12345"
TEST_CLIENT_ID = "test-client-67890"
TEST_KID = "test-key-id-001"
TEST_AUTHORITY = "https://login.microsoftonline.com/"
TEST_ISSUER = f"https://login.microsoftonline.com/{TEST_TENANT_ID}/v2.0"
TEST_JWKS_URI = f"https://login.microsoftonline.com/{TEST_TENANT_ID}/discovery/v2.0/keys"
TEST_DISCOVERY_URL = (
    f"{TEST_AUTHORITY}{TEST_TENANT_ID}/v2.0/.well-known/openid-configuration"
)


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def prevent_dotenv_loading(monkeypatch, tmp_path):
    """Prevent Pydantic settings from reading .env file during tests.

    Runs automatically before each test to ensure environment isolation
    from a development .env file and from TOKEN_VERIFIER_* variables.
    """
    for var in list(os.environ):
        if var.startswith("TOKEN_VERIFIER_"):
            monkeypatch.delenv(var, raising=False)

    original_cwd = os.getcwd()
    (tmp_path / ".env").write_text("")
    os.chdir(tmp_path)

    from config.settings import reset_config

    reset_config()

    yield

    reset_config()
    os.chdir(original_cwd)


# =============================================================================
# RSA Key Pair Fixtures (for JWT signing)
# =============================================================================


def _generate_key_pair() -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    private_key = rsa.generate_private_key(
        public_exponent=65537, key_size=2048, backend=default_backend()
    )
    return private_key, private_key.public_key()


def _private_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def rsa_key_pair() -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generate RSA key pair for test token signing.

    Session-scoped for performance - same keys used across all tests.
    """
    return _generate_key_pair()


@pytest.fixture(scope="session")
def other_rsa_key_pair() -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """A second key pair, for rotation and bad-signature tests."""
    return _generate_key_pair()


@pytest.fixture(scope="session")
def private_key_pem(rsa_key_pair) -> bytes:
    """Get PEM-encoded private key for JWT signing."""
    private_key, _ = rsa_key_pair
    return _private_pem(private_key)


@pytest.fixture(scope="session")
def other_private_key_pem(other_rsa_key_pair) -> bytes:
    private_key, _ = other_rsa_key_pair
    return _private_pem(private_key)


# =============================================================================
# JWKS / Discovery Fixtures
# =============================================================================


def _int_to_base64url(n: int) -> str:
    """Convert integer to base64url-encoded string (for JWKS)."""
    byte_length = (n.bit_length() + 7) // 8
    n_bytes = n.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(n_bytes).rstrip(b"=").decode("ascii")


def make_jwk(public_key: rsa.RSAPublicKey, kid: str) -> Dict[str, Any]:
    """Build an RSA JWK entry like the ones Azure AD publishes."""
    public_numbers = public_key.public_numbers()
    return {
        "kty": "RSA",
        "use": "sig",
        "kid": kid,
        "n": _int_to_base64url(public_numbers.n),
        "e": _int_to_base64url(public_numbers.e),
        "alg": "RS256",
    }


@pytest.fixture(scope="session")
def test_jwks(rsa_key_pair) -> Dict[str, Any]:
    """JWKS containing the test public key, as served by Azure AD."""
    _, public_key = rsa_key_pair
    return {"keys": [make_jwk(public_key, TEST_KID)]}


@pytest.fixture
def discovery_document() -> Dict[str, Any]:
    """Discovery payload as returned by the v2.0 OpenID configuration endpoint."""
    return {
        "token_endpoint": f"https://login.microsoftonline.com/{TEST_TENANT_ID}/oauth2/v2.0/token",
        "jwks_uri": TEST_JWKS_URI,
        "issuer": TEST_ISSUER,
        "id_token_signing_alg_values_supported": ["RS256"],
    }


@pytest.fixture
def tenant_settings():
    from config.settings import TenantSettings

    return TenantSettings(
        tenant_id=TEST_TENANT_ID,
        client_id=TEST_CLIENT_ID,
        authority_endpoint=TEST_AUTHORITY,
    )


# =============================================================================
# Token Generation Fixtures
# =============================================================================


def _b64_json(value: Dict[str, Any]) -> str:
    raw = json.dumps(value, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def default_claims(now: int | None = None, expires_in: int = 3600) -> Dict[str, Any]:
    now = int(time.time()) if now is None else now
    return {
        "iss": TEST_ISSUER,
        "aud": TEST_CLIENT_ID,
        "iat": now,
        "nbf": now,
        "exp": now + expires_in,
        "sub": "test-user-subject",
    }


@pytest.fixture
def create_test_token(private_key_pem):
    """Factory fixture to create signed test JWTs.

    Usage:
        token = create_test_token({"sub": "user123", "aud": "client-id"})
    """

    def _create_token(
        claims: Dict[str, Any] | None = None,
        kid: str | None = TEST_KID,
        key: bytes | None = None,
        expires_in: int = 3600,
        now: int | None = None,
    ) -> str:
        payload = default_claims(now=now, expires_in=expires_in)
        payload.update(claims or {})
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(
            payload, key or private_key_pem, algorithm="RS256", headers=headers
        )

    return _create_token


@pytest.fixture
def unsigned_token():
    """Factory for tokens with alg 'none' and an empty signature."""

    def _create_token(claims: Dict[str, Any] | None = None) -> str:
        payload = default_claims()
        payload.update(claims or {})
        header = {"alg": "none", "typ": "JWT", "kid": TEST_KID}
        return f"{_b64_json(header)}.{_b64_json(payload)}."

    return _create_token


@pytest.fixture
def valid_test_token(create_test_token) -> str:
    """Create a valid test token with standard claims."""
    return create_test_token(
        {
            "sub": "test-user-12345",
            "oid": "test-oid-67890",
            "tid": TEST_TENANT_ID,
            "scp": "User.Read profile",
            "name": "Test User",
        }
    )


# =============================================================================
# Fake HTTP session
# =============================================================================


def make_response(status: int = 200, payload: Any = None, body: str | None = None):
    """Create a mock aiohttp response with the given status and body."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.reason = "OK" if status == 200 else "Error"
    text = body if body is not None else json.dumps(payload)
    mock_response.text = AsyncMock(return_value=text)
    return mock_response


class FakeSession:
    """Stands in for aiohttp.ClientSession.

    Routes map a URL to a response, an exception to raise, or a list of those
    served in order (the last one repeats). Every GET is recorded.
    """

    def __init__(self, routes: Dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[Tuple[str, Dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return self._respond(url)

    def count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)

    @asynccontextmanager
    async def _respond(self, url: str):
        # Yield to the event loop like a real request would.
        await asyncio.sleep(0)
        outcome = self.routes[url]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        yield outcome

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session(discovery_document, test_jwks) -> FakeSession:
    """Fake session serving the test tenant's discovery document and JWKS."""
    return FakeSession(
        {
            TEST_DISCOVERY_URL: make_response(payload=discovery_document),
            TEST_JWKS_URI: make_response(payload=test_jwks),
        }
    )


@pytest.fixture
def token_verifier(fake_session):
    """AzureTokenVerifier wired to the fake session."""
    from auth.verifier import AzureTokenVerifier
    from config.settings import VerifierConfig

    return AzureTokenVerifier(config=VerifierConfig(), session=fake_session)
