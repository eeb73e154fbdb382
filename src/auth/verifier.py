"""
Azure AD bearer token verification entry point.

AzureTokenVerifier ties the pipeline together:
- Strips an optional "Bearer " prefix from the raw token
- Looks up (or discovers and builds) the Verifier for the tenant settings
- Verifies signature, issuer, audience, algorithm and timestamps

Usage:
    async with AzureTokenVerifier() as verifier:
        claims = await verifier.verify(tenant_id, client_id, raw_token)
        print(claims.subject)

Every failure is raised as a TokenVerifierError subclass (see core.exceptions);
partially validated claims are never returned.
"""

import logging
import time
from typing import Callable, Optional

import aiohttp

from auth.builder import VerifiedClaims, Verifier, VerifierBuilder
from auth.cache import ProviderCache
from auth.discovery import DiscoveryClient
from auth.http import create_http_session
from auth.keyset import KeySet, RemoteKeySet
from config.settings import TenantSettings, VerifierConfig
from utils.auth_utils import strip_bearer_prefix

logger = logging.getLogger(__name__)


class AzureTokenVerifier:
    """Verifies Azure AD bearer tokens for any number of tenant configurations.

    Each instance owns its own provider cache, so independent instances never
    share trust state. The aiohttp session is created lazily on first use
    unless one is injected; injected sessions are not closed by close().
    """

    def __init__(
        self,
        config: Optional[VerifierConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        discovery_client: Optional[DiscoveryClient] = None,
        cache: Optional[ProviderCache] = None,
        key_set_factory: Optional[Callable[[str], KeySet]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the verifier.

        Args:
            config: Runtime configuration; defaults to VerifierConfig.defaults(),
                which never reads the environment
            session: Optional aiohttp session to use for all fetches
            discovery_client: Optional discovery client override
            cache: Optional provider cache override
            key_set_factory: Optional factory creating a key set per JWKS URL
            clock: Wall clock used for exp/nbf/iat validation
        """
        self.config = config or VerifierConfig.defaults()
        self._session = session
        self._owns_session = session is None

        self._discovery = discovery_client or DiscoveryClient(
            self._get_session,
            timeout=self.config.http_timeout,
            user_agent=self.config.user_agent,
        )
        self._builder = VerifierBuilder(
            key_set_factory or self._create_key_set,
            leeway=self.config.clock_skew_leeway,
            not_before_skew=self.config.not_before_skew,
            clock=clock,
        )
        self._cache = cache or ProviderCache(
            self._build_verifier,
            lifetime=self.config.provider_lifetime,
        )

    async def __aenter__(self) -> "AzureTokenVerifier":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if this verifier created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            logger.debug("Creating HTTP session for discovery and JWKS fetches")
            self._session = create_http_session(self.config)
            self._owns_session = True
        return self._session

    def _create_key_set(self, jwks_uri: str) -> KeySet:
        return RemoteKeySet(
            jwks_uri,
            self._get_session,
            timeout=self.config.http_timeout,
            min_refresh_interval=self.config.jwks_min_refresh_interval,
            user_agent=self.config.user_agent,
        )

    async def _build_verifier(self, settings: TenantSettings) -> Verifier:
        document = await self._discovery.discover(settings)
        return self._builder.build(document, settings)

    async def verify_token(
        self, settings: TenantSettings, raw_token: str
    ) -> VerifiedClaims:
        """Verify a raw bearer token against a tenant configuration.

        Args:
            settings: Tenant to trust and audience to expect
            raw_token: JWT, optionally prefixed with "Bearer "

        Returns:
            VerifiedClaims with the full validated payload

        Raises:
            TokenVerifierError: A taxonomy member describing the failure
        """
        settings.require_complete()
        token = strip_bearer_prefix(raw_token)
        verifier = await self._cache.get_or_build(settings)
        return await verifier.verify(token)

    async def verify(
        self,
        tenant_id: str,
        client_id: str,
        raw_token: str,
        authority_endpoint: Optional[str] = None,
    ) -> VerifiedClaims:
        """Verify a token given the tenant identifiers directly.

        Args:
            tenant_id: Azure AD tenant ID
            client_id: Expected audience
            raw_token: JWT, optionally prefixed with "Bearer "
            authority_endpoint: Authority base URL; None uses the configured one

        Returns:
            VerifiedClaims with the full validated payload
        """
        settings = TenantSettings(
            tenant_id=tenant_id,
            client_id=client_id,
            authority_endpoint=(
                authority_endpoint
                if authority_endpoint is not None
                else self.config.authority_endpoint
            ),
        )
        return await self.verify_token(settings, raw_token)
