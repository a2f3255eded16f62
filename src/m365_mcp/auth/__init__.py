"""OAuth authentication for Microsoft 365 MCP.

This package provides OAuth2 authorization-code + PKCE authentication
against Entra ID for Microsoft Graph.

Quick Start:
    ```python
    from m365_mcp.auth import OAuthManager
    from m365_mcp.config import load_auth_config

    manager = OAuthManager(load_auth_config())

    # Signs in on first use, refreshes silently afterwards
    access_token = await manager.get_access_token()
    ```
"""

from m365_mcp.auth.models import CredentialRecord, TokenStatus
from m365_mcp.auth.oauth_manager import (
    GRAPH_SCOPES,
    AuthorizationError,
    OAuthManager,
    compute_code_challenge,
)
from m365_mcp.auth.token_storage import CredentialStore

__all__ = [
    "OAuthManager",
    "CredentialStore",
    "CredentialRecord",
    "TokenStatus",
    "AuthorizationError",
    "GRAPH_SCOPES",
    "compute_code_challenge",
]
