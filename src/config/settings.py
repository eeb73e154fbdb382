"""
Configuration settings for Azure AD token verification.

Two kinds of configuration live here:
- TenantSettings: which tenant's keys to trust and which audience to expect.
  Supplied by the calling code, immutable and hashable so it can key caches.
- VerifierConfig: runtime knobs (timeouts, cache lifetimes, User-Agent),
  loadable from the environment via pydantic-settings.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigInvalidError

DEFAULT_AUTHORITY_ENDPOINT = "https://login.microsoftonline.com/"

# Latest Chrome on Linux at the time of writing; some identity providers
# reject requests from unrecognised agents.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/94.0.4606.71 Safari/537.36"
)

DISCOVERY_PATH = "/v2.0/.well-known/openid-configuration"


class TenantSettings(BaseModel):
    """Identifies the Azure AD tenant and the expected token audience.

    Equality and hashing are by value on all three fields, so two instances
    describing the same tenant configuration share a provider cache entry.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(description="Azure AD tenant ID")
    client_id: str = Field(description="Application (client) ID, the expected audience")
    authority_endpoint: str = Field(
        default=DEFAULT_AUTHORITY_ENDPOINT,
        description="Active Directory authority base URL, including trailing slash",
    )

    def require_complete(self) -> None:
        """Raise ConfigInvalidError if any field is empty.

        Raises:
            ConfigInvalidError: Naming every empty field.
        """
        missing = [
            name
            for name in ("tenant_id", "client_id", "authority_endpoint")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigInvalidError(
                f"Tenant settings have empty fields: {', '.join(missing)}"
            )

    @property
    def discovery_url(self) -> str:
        """OpenID configuration URL for this tenant.

        The authority is concatenated as-is, so it must end with a slash.
        """
        return f"{self.authority_endpoint}{self.tenant_id}{DISCOVERY_PATH}"


class VerifierConfig(BaseSettings):
    """Token verifier runtime configuration.

    All values can be overridden through ``TOKEN_VERIFIER_*`` environment
    variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_VERIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
    )

    # Default tenant (optional, used by create_token_verifier)
    tenant_id: Optional[str] = Field(default=None, description="Azure AD tenant ID")
    client_id: Optional[str] = Field(
        default=None, description="Application (client) ID"
    )
    authority_endpoint: str = Field(
        default=DEFAULT_AUTHORITY_ENDPOINT,
        description="Active Directory authority base URL",
    )

    # HTTP settings
    http_timeout: float = Field(
        default=10.0, gt=0, description="Timeout in seconds for each metadata/JWKS fetch"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, description="User-Agent sent to the identity provider"
    )

    # Caching
    provider_lifetime: float = Field(
        default=30 * 60,
        gt=0,
        description="Seconds a discovered verifier is reused before re-discovery",
    )
    jwks_min_refresh_interval: float = Field(
        default=60.0,
        ge=0,
        description="Minimum seconds between JWKS re-fetches triggered by unknown key IDs",
    )

    # Token validation
    clock_skew_leeway: float = Field(
        default=0.0, ge=0, description="Seconds of leeway for the exp check"
    )
    not_before_skew: float = Field(
        default=300.0,
        ge=0,
        description="Seconds an issuer clock may run ahead of ours for nbf/iat checks",
    )

    @classmethod
    def defaults(cls) -> "VerifierConfig":
        """Built-in defaults, ignoring environment variables and .env files."""
        return cls.model_construct()

    def tenant_settings(self) -> TenantSettings:
        """Build TenantSettings from the configured tenant and client IDs.

        Raises:
            ConfigInvalidError: If tenant_id or client_id is not configured.
        """
        settings = TenantSettings(
            tenant_id=self.tenant_id or "",
            client_id=self.client_id or "",
            authority_endpoint=self.authority_endpoint,
        )
        settings.require_complete()
        return settings


# Global configuration instance - lazy initialized
_verifier_config: VerifierConfig | None = None


def get_verifier_config(config: VerifierConfig | None = None) -> VerifierConfig:
    """Get the global verifier configuration with optional injection.

    Args:
        config: Optional config instance to inject (useful for testing).
                If provided, sets this as the global config.

    Returns:
        The global VerifierConfig instance.
    """
    global _verifier_config
    if config is not None:
        _verifier_config = config
    if _verifier_config is None:
        _verifier_config = VerifierConfig()
    return _verifier_config


def reset_config() -> None:
    """Reset the config singleton for testing."""
    global _verifier_config
    _verifier_config = None
