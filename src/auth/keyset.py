"""
JSON Web Key Set resolution with on-demand refresh.

RemoteKeySet wraps a JWKS URL and answers "give me the public key for key ID
K". The full key document is fetched on first use and re-fetched when a key ID
is not present locally, which is how Azure AD signing key rotation is picked
up. Re-fetches are rate limited by a minimum interval so a stream of tokens
with bogus key IDs cannot hammer the identity provider.

Concurrency model (single event loop):
- Lookups of known key IDs read the current key map without locking.
- Refreshes are serialised by an asyncio.Lock. A caller that queued behind a
  refresh reuses its result instead of fetching again (generation counter).
- The key map is replaced wholesale, so a verification in progress keeps the
  key it already resolved.
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import aiohttp
import jwt
from jwt.algorithms import RSAAlgorithm

from auth.http import SessionFactory
from config.settings import DEFAULT_USER_AGENT
from core.exceptions import KeySetUnavailableError

logger = logging.getLogger(__name__)


class KeySet(Protocol):
    """Source of public signing keys indexed by key ID."""

    async def get_key(self, kid: str) -> Any:
        """Return the public key for ``kid`` or raise KeySetUnavailableError."""
        ...


def parse_jwks(document: Any) -> Dict[str, Any]:
    """Extract RSA signing keys from a JWKS document.

    Keys without a ``kid``, non-RSA keys and encryption keys are skipped.

    Args:
        document: Decoded JWKS JSON

    Returns:
        Mapping of key ID to public key object

    Raises:
        KeySetUnavailableError: If the document has no 'keys' array
    """
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise KeySetUnavailableError("JWKS document has no 'keys' array")

    keys: Dict[str, Any] = {}
    for entry in document["keys"]:
        if not isinstance(entry, dict):
            continue
        kid = entry.get("kid")
        if not kid or entry.get("kty") != "RSA" or entry.get("use", "sig") != "sig":
            continue
        try:
            keys[kid] = RSAAlgorithm.from_jwk(entry)
        except (jwt.PyJWTError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping unusable JWKS key {kid}: {e}")
    return keys


class StaticKeySet:
    """Fixed in-memory key set.

    Useful for callers that already hold key material, and for tests.
    """

    def __init__(self, keys: Mapping[str, Any]) -> None:
        self._keys = dict(keys)

    @classmethod
    def from_jwks(cls, document: Dict[str, Any]) -> "StaticKeySet":
        return cls(parse_jwks(document))

    async def get_key(self, kid: str) -> Any:
        try:
            return self._keys[kid]
        except KeyError:
            raise KeySetUnavailableError(f"Signing key '{kid}' not found") from None


class RemoteKeySet:
    """Lazily fetched, auto-refreshing key set backed by a JWKS URL."""

    def __init__(
        self,
        jwks_uri: str,
        session_factory: SessionFactory,
        timeout: float = 10.0,
        min_refresh_interval: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the key set. No I/O happens until the first lookup.

        Args:
            jwks_uri: URL of the JWKS document
            session_factory: Returns the aiohttp session to fetch with
            timeout: Seconds allowed for each fetch
            min_refresh_interval: Minimum seconds between fetch attempts
                triggered by unknown key IDs
            user_agent: User-Agent header for the fetch
            clock: Monotonic time source
        """
        self.jwks_uri = jwks_uri
        self._session_factory = session_factory
        self._timeout = timeout
        self._min_refresh_interval = min_refresh_interval
        self._user_agent = user_agent
        self._clock = clock

        self._keys: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._generation = 0
        self._last_attempt: Optional[float] = None
        self._last_error: Optional[KeySetUnavailableError] = None

    @property
    def key_ids(self) -> list[str]:
        return list(self._keys)

    async def get_key(self, kid: str) -> Any:
        """Return the public key for a key ID, refreshing if it is unknown.

        Raises:
            KeySetUnavailableError: If the fetch fails or the key ID is still
                absent after refreshing.
        """
        key = self._keys.get(kid)
        if key is not None:
            return key

        await self.refresh()

        key = self._keys.get(kid)
        if key is None:
            raise KeySetUnavailableError(
                f"Signing key '{kid}' not found in JWKS from {self.jwks_uri}. "
                f"Available: {self.key_ids}"
            )
        return key

    async def refresh(self) -> None:
        """Re-fetch the key document, coalescing with concurrent refreshes.

        Does nothing if another refresh completed while waiting for the lock,
        or if the previous attempt was within the minimum refresh interval
        (re-raising that attempt's failure, if any).

        Raises:
            KeySetUnavailableError: If the fetch fails
        """
        generation = self._generation
        async with self._lock:
            if self._generation != generation:
                return

            now = self._clock()
            if (
                self._last_attempt is not None
                and now - self._last_attempt < self._min_refresh_interval
            ):
                logger.debug(f"JWKS refresh for {self.jwks_uri} rate limited")
                if self._last_error is not None:
                    raise self._last_error
                return

            self._last_attempt = now
            try:
                keys = await self._fetch()
            except KeySetUnavailableError as e:
                self._last_error = e
                raise

            self._keys = keys
            self._last_error = None
            self._generation += 1
            logger.info(f"JWKS refreshed from {self.jwks_uri}: {len(keys)} keys")

    async def _fetch(self) -> Dict[str, Any]:
        logger.debug(f"Fetching JWKS from {self.jwks_uri}")
        session = self._session_factory()
        try:
            async with session.get(
                self.jwks_uri,
                headers={"User-Agent": self._user_agent},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                body = await response.text(errors="replace")
                status = response.status
        except asyncio.TimeoutError as e:
            raise KeySetUnavailableError(
                f"Timed out after {self._timeout}s fetching JWKS from {self.jwks_uri}"
            ) from e
        except aiohttp.ClientError as e:
            raise KeySetUnavailableError(
                f"JWKS fetch from {self.jwks_uri} failed: {e}"
            ) from e

        if status != 200:
            raise KeySetUnavailableError(
                f"JWKS fetch failed with status {status}: {body[:512]}"
            )

        try:
            document = json.loads(body)
        except ValueError as e:
            raise KeySetUnavailableError(
                f"JWKS from {self.jwks_uri} is not valid JSON: {e}"
            ) from e
        return parse_jwks(document)
