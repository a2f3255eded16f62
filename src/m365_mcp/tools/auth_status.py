"""Connection status tool; also the entry point for interactive sign-in."""

import logging
from typing import Any

from mcp.types import Tool

from m365_mcp.auth import GRAPH_SCOPES, OAuthManager, TokenStatus
from m365_mcp.graph import GraphClient
from m365_mcp.tools.profile import fetch_profile_summary

logger = logging.getLogger(__name__)

TOOL = Tool(
    name="ms_auth_status",
    description=(
        "Check Microsoft 365 connection status. Signs in through the browser "
        "if not yet connected, and refreshes an expired token."
    ),
    inputSchema={"type": "object", "properties": {}},
)


def format_not_connected(message: str) -> str:
    return f"Status: Not connected\nError: {message}\nAction: Run ms_auth_status again to sign in."


async def _connected_lines(client: GraphClient, token: str, header: str) -> list[str]:
    lines = [header]
    profile = await fetch_profile_summary(client, token)
    if profile:
        lines.append(f"User: {profile}")
    return lines


async def execute_auth_status(
    manager: OAuthManager, client: GraphClient, arguments: dict[str, Any]
) -> str:
    """Report connection status, signing in or refreshing as needed."""
    try:
        status, record = manager.get_status()

        if record is None or status in (TokenStatus.MISSING, TokenStatus.INVALID):
            record = await manager.authenticate()
            lines = await _connected_lines(
                client, record.access_token, "Status: Connected ✓ (just signed in)"
            )
            return "\n".join(lines)

        if record.is_expired():
            refreshed = await manager.refresh_access_token(record.refresh_token)
            if refreshed is None:
                return format_not_connected("Token expired and refresh failed. Please sign in again.")
            record = refreshed

        lines = await _connected_lines(client, record.access_token, "Status: Connected ✓")
        lines.append(f"Token expires: {record.expires_at.isoformat()}")
        lines.append(f"Scopes: {record.scopes or ' '.join(GRAPH_SCOPES)}")
        return "\n".join(lines)
    except Exception as e:
        logger.warning("Authentication status check failed: %s", e)
        return format_not_connected(str(e))
