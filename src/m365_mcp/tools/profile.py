"""Signed-in user profile."""

from typing import Any

from mcp.types import Tool

from m365_mcp.graph import GraphClient

TOOL = Tool(
    name="ms_profile",
    description="Get the signed-in user's Microsoft 365 profile (name, email, job title, office).",
    inputSchema={"type": "object", "properties": {}},
)


async def fetch_profile_summary(client: GraphClient, token: str) -> str | None:
    """Fetch "Name (email)" for the signed-in user, or None on failure."""
    result = await client.fetch("/me", token)
    if not result.ok:
        return None
    me = result.data or {}
    name = me.get("displayName") or "Unknown"
    email = me.get("mail") or me.get("userPrincipalName") or "Unknown"
    return f"{name} ({email})"


async def execute_profile(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    result = await client.fetch("/me", token)
    if not result.ok:
        return f"Error: {result.error.message}"

    me = result.data or {}
    return "\n".join(
        [
            f"Name: {me.get('displayName') or 'N/A'}",
            f"Email: {me.get('mail') or me.get('userPrincipalName') or 'N/A'}",
            f"Job Title: {me.get('jobTitle') or 'N/A'}",
            f"Office: {me.get('officeLocation') or 'N/A'}",
        ]
    )
