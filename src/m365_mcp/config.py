"""Environment-driven configuration for m365-mcp.

Environment Variables:
    MS365_MCP_CLIENT_ID: Entra ID application (client) ID (required)
    MS365_MCP_TENANT_ID: Entra ID tenant ID or "common"/"organizations" (required)
    MS365_MCP_CLIENT_SECRET: Client secret for confidential app registrations (optional).
        Leave unset for public clients, which authenticate with PKCE only.
    MS365_MCP_REDIRECT_URL: Fixed redirect URL (optional). When unset, the OAuth
        callback listener binds an ephemeral port on localhost.
    MS365_MCP_TIMEZONE: IANA timezone for calendar results (optional). Defaults
        to the host timezone.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_CLIENT_ID = "MS365_MCP_CLIENT_ID"
ENV_CLIENT_SECRET = "MS365_MCP_CLIENT_SECRET"  # nosec B105 - env var name, not a secret
ENV_TENANT_ID = "MS365_MCP_TENANT_ID"
ENV_REDIRECT_URL = "MS365_MCP_REDIRECT_URL"
ENV_TIMEZONE = "MS365_MCP_TIMEZONE"

REQUIRED_ENV_VARS = [ENV_CLIENT_ID, ENV_TENANT_ID]

FALLBACK_TIMEZONE = "UTC"


class ConfigurationError(ValueError):
    """Raised when required configuration is missing."""


class AuthConfig(BaseModel):
    """OAuth application settings, immutable for the process lifetime.

    Attributes:
        client_id: Application (client) ID registered with Entra ID.
        client_secret: Client secret, None for public (PKCE-only) clients.
        tenant_id: Tenant that scopes the authorize and token endpoints.
        redirect_url: Fixed redirect URL, None for a dynamic localhost port.
        timezone: IANA timezone override for the Graph Prefer header.
    """

    client_id: str = Field(..., description="Application (client) ID")
    client_secret: str | None = Field(default=None, description="Client secret")
    tenant_id: str = Field(..., description="Tenant ID")
    redirect_url: str | None = Field(default=None, description="Fixed redirect URL")
    timezone: str | None = Field(default=None, description="IANA timezone override")

    model_config = {"frozen": True}


def load_auth_config(environ: Mapping[str, str] | None = None) -> AuthConfig:
    """Load OAuth configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        AuthConfig built from the environment.

    Raises:
        ConfigurationError: If any required variable is missing or empty.
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    return AuthConfig(
        client_id=env[ENV_CLIENT_ID],
        client_secret=env.get(ENV_CLIENT_SECRET) or None,
        tenant_id=env[ENV_TENANT_ID],
        redirect_url=env.get(ENV_REDIRECT_URL) or None,
        timezone=env.get(ENV_TIMEZONE) or None,
    )


def _is_valid_zone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def get_local_timezone_name() -> str | None:
    """Resolve the host's IANA timezone name.

    Checks the TZ environment variable, then the /etc/localtime symlink.

    Returns:
        IANA name such as "Europe/London", or None if it can't be determined.
    """
    tz_env = os.environ.get("TZ", "").lstrip(":")
    if tz_env and _is_valid_zone(tz_env):
        return tz_env

    localtime = Path("/etc/localtime")
    try:
        target = str(localtime.resolve())
    except OSError:
        return None

    marker = "zoneinfo/"
    if marker in target:
        name = target.split(marker, 1)[1]
        if _is_valid_zone(name):
            return name

    return None


def resolve_timezone(config: AuthConfig | None = None) -> str:
    """Pick the timezone sent in the Graph Prefer header.

    Order: configured override, host timezone, then UTC.
    """
    if config is not None and config.timezone:
        return config.timezone
    return get_local_timezone_name() or FALLBACK_TIMEZONE
