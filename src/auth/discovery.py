"""
OpenID discovery for Azure AD tenants.

For many OIDC providers the discovery endpoint matches the issuer. For Azure AD
it does not: the discovery endpoint lives under the authority URL while the
issuer in the discovery payload has a different shape. The issuer and key set
location therefore have to be read from the discovery document before a
verifier can be configured.
"""

import asyncio
import json
import logging

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from auth.http import SessionFactory
from config.settings import DEFAULT_USER_AGENT, TenantSettings
from core.exceptions import (
    DiscoveryHTTPError,
    DiscoveryMalformedError,
    DiscoveryTransportError,
)

logger = logging.getLogger(__name__)


class DiscoveryDocument(BaseModel):
    """The subset of the OpenID configuration needed to verify tokens."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str = Field(min_length=1)
    jwks_uri: str = Field(min_length=1)


class DiscoveryClient:
    """Fetches a tenant's OpenID configuration document.

    Issues exactly one GET per call; retries are left to the caller.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout
        self._user_agent = user_agent

    async def discover(self, settings: TenantSettings) -> DiscoveryDocument:
        """Fetch and parse the discovery document for a tenant.

        Args:
            settings: Tenant settings; must be complete.

        Returns:
            DiscoveryDocument with the true issuer and JWKS URL.

        Raises:
            ConfigInvalidError: If the settings have empty fields
            DiscoveryTransportError: On network failure or timeout
            DiscoveryHTTPError: If the endpoint does not answer 200
            DiscoveryMalformedError: If the body is not JSON or lacks fields
        """
        settings.require_complete()
        url = settings.discovery_url

        logger.debug(f"Fetching OpenID configuration from {url}")
        session = self._session_factory()
        try:
            async with session.get(
                url,
                headers={"User-Agent": self._user_agent},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                body = await response.text(errors="replace")
                status = response.status
                reason = response.reason
        except asyncio.TimeoutError as e:
            raise DiscoveryTransportError(
                f"Timed out after {self._timeout}s fetching {url}"
            ) from e
        except aiohttp.ClientError as e:
            raise DiscoveryTransportError(f"Failed to fetch {url}: {e}") from e

        if status != 200:
            raise DiscoveryHTTPError(status, reason, body)

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise DiscoveryMalformedError(
                f"Unable to parse discovery document from {url}: {e}"
            ) from e
        if not isinstance(payload, dict):
            raise DiscoveryMalformedError(
                f"Discovery document from {url} is not a JSON object"
            )

        try:
            document = DiscoveryDocument.model_validate(payload)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise DiscoveryMalformedError(
                f"Discovery document from {url} has missing or invalid fields: "
                f"{', '.join(fields)}"
            ) from e

        logger.info(
            f"Discovered issuer {document.issuer} for tenant {settings.tenant_id}"
        )
        return document
