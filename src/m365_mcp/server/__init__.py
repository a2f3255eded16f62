"""MCP server implementation for Microsoft 365.

Provides 8 read-only tools across Outlook, Teams, and OneDrive:

- ms_auth_status: Connection status, interactive sign-in, token refresh
- ms_profile: Signed-in user profile
- ms_calendar: Calendar events for a day or range
- ms_mail: Recent or searched email, full message drill-down
- ms_chat: Teams chats and chat messages
- ms_files: OneDrive listing and search
- ms_transcripts: Teams meeting transcripts with recurring-meeting matching
- ms_server_info: Version and configuration diagnostics

Transport: Stdio
Authentication: OAuth 2.0 authorization code + PKCE with automatic token refresh
"""

from m365_mcp.server.m365_server import M365Server, main


def create_server() -> M365Server:
    """Create and configure a Microsoft 365 MCP server.

    Returns:
        M365Server: Configured server instance ready to run.

    Raises:
        ConfigurationError: If required environment variables are missing.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return M365Server()


__all__ = ["create_server", "M365Server", "main"]
