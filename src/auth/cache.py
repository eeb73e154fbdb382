"""
Per-tenant cache of discovered verifiers.

Discovery costs a network round trip, so the Verifier built for a tenant
configuration is reused for a fixed lifetime (30 minutes by default) and then
rebuilt on the next request, which picks up issuer or JWKS location changes.

Cache misses are single-flight per TenantSettings: the first caller starts a
build task and every concurrent caller for the same settings awaits that same
task, sharing its result or its failure. Builds for different tenants run
independently; there is no cache-wide lock.

Rebuild failures fail fast: the stale entry is evicted and the error is
raised, so the next call re-discovers from scratch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from auth.builder import Verifier
from config.settings import TenantSettings

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_LIFETIME = 30 * 60


@dataclass(frozen=True)
class _CacheEntry:
    """Cached verifier with its creation time."""

    settings: TenantSettings
    verifier: Verifier
    created_at: float  # monotonic timestamp

    def is_stale(self, now: float, lifetime: float) -> bool:
        return now - self.created_at >= lifetime


class ProviderCache:
    """Memoizes verifiers per tenant configuration for a bounded lifetime."""

    def __init__(
        self,
        build: Callable[[TenantSettings], Awaitable[Verifier]],
        lifetime: float = DEFAULT_PROVIDER_LIFETIME,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            build: Coroutine function performing discovery and building a
                Verifier for the given settings
            lifetime: Seconds an entry is served before it is rebuilt
            clock: Monotonic time source
        """
        self._build = build
        self._lifetime = lifetime
        self._clock = clock
        self._entries: Dict[TenantSettings, _CacheEntry] = {}
        self._pending: Dict[TenantSettings, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, settings: object) -> bool:
        return settings in self._entries

    async def get_or_build(self, settings: TenantSettings) -> Verifier:
        """Return a fresh verifier for the settings, building it if needed.

        Raises:
            TokenVerifierError: Any discovery or build failure, shared by all
                callers waiting on the same build
        """
        entry = self._entries.get(settings)
        if entry is not None and not entry.is_stale(self._clock(), self._lifetime):
            return entry.verifier

        pending = self._pending.get(settings)
        if pending is None:
            pending = asyncio.ensure_future(self._rebuild(settings))
            self._pending[settings] = pending
            pending.add_done_callback(
                lambda future, key=settings: self._forget_pending(key, future)
            )
        else:
            logger.debug(f"Joining in-flight build for tenant {settings.tenant_id}")

        # Shield so one caller's cancellation does not abort the shared build.
        return await asyncio.shield(pending)

    def _forget_pending(self, settings: TenantSettings, future: asyncio.Future) -> None:
        if self._pending.get(settings) is future:
            del self._pending[settings]
        # Retrieve the exception so an unobserved failure is not reported.
        if not future.cancelled():
            future.exception()

    async def _rebuild(self, settings: TenantSettings) -> Verifier:
        logger.info(f"Building verifier for tenant {settings.tenant_id}")
        try:
            verifier = await self._build(settings)
        except BaseException:
            if self._entries.pop(settings, None) is not None:
                logger.info(
                    f"Evicted stale verifier for tenant {settings.tenant_id} "
                    "after rebuild failure"
                )
            raise

        self._entries[settings] = _CacheEntry(
            settings=settings,
            verifier=verifier,
            created_at=self._clock(),
        )
        return verifier
