"""
FastMCP integration for Azure AD token verification.

EntraIdTokenVerifier plugs AzureTokenVerifier into FastMCP's auth middleware
for a single tenant configuration. FastMCP expects verify_token() to return
None for any invalid token, so this adapter is the boundary where taxonomy
errors are logged and turned into None.
"""

import logging
from typing import Optional

from fastmcp.server.auth import AccessToken, TokenVerifier
from pydantic import AnyHttpUrl

from auth.verifier import AzureTokenVerifier
from config.settings import TenantSettings, VerifierConfig, get_verifier_config
from core.exceptions import TokenVerifierError

logger = logging.getLogger(__name__)


class EntraIdTokenVerifier(TokenVerifier):
    """FastMCP TokenVerifier backed by discovery-based Azure AD verification.

    Scopes are taken from 'scp' (delegated) or 'roles' (application) and
    prefixed with api://{client_id}/.
    """

    def __init__(
        self,
        settings: TenantSettings,
        verifier: Optional[AzureTokenVerifier] = None,
        base_url: AnyHttpUrl | str | None = None,
        required_scopes: list[str] | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Tenant whose tokens are accepted
            verifier: Shared AzureTokenVerifier (default: a new one)
            base_url: Optional base URL for OAuth metadata endpoints
            required_scopes: Optional list of scopes required for all requests
        """
        super().__init__(base_url=base_url, required_scopes=required_scopes)
        settings.require_complete()
        self.settings = settings
        self._verifier = verifier or AzureTokenVerifier()

        logger.info(f"EntraIdTokenVerifier initialized for tenant {settings.tenant_id}")

    async def verify_token(self, token: str) -> Optional[AccessToken]:
        """Verify a JWT access token.

        Returns:
            AccessToken if valid, None if invalid. The failure kind is logged.
        """
        try:
            claims = await self._verifier.verify_token(self.settings, token)
        except TokenVerifierError as e:
            logger.warning(f"Token rejected ({e.kind}): {e}")
            return None

        scopes = [
            f"api://{self.settings.client_id}/{scope}" for scope in claims.scopes
        ]
        client_id = claims.get("azp") or claims.subject or "unknown"

        logger.info(
            f"Token verified successfully. Subject: {claims.subject}, Scopes: {scopes}"
        )

        return AccessToken(
            token=token,
            client_id=str(client_id),
            scopes=scopes,
            expires_at=int(claims.expires_at),
            claims=claims.claims,
        )


def create_token_verifier(
    config: Optional[VerifierConfig] = None,
    required_scopes: list[str] | None = None,
) -> EntraIdTokenVerifier:
    """Create a FastMCP verifier for the tenant named in the configuration.

    Raises:
        ConfigInvalidError: If TOKEN_VERIFIER_TENANT_ID or
            TOKEN_VERIFIER_CLIENT_ID is not set
    """
    config = config or get_verifier_config()
    return EntraIdTokenVerifier(
        config.tenant_settings(),
        verifier=AzureTokenVerifier(config=config),
        required_scopes=required_scopes,
    )
