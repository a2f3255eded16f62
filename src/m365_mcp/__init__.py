"""Microsoft 365 MCP Server.

Connect Claude to Microsoft Graph: profile, calendar, mail, Teams chats,
OneDrive files, and Teams meeting transcripts.
"""

from m365_mcp.__version__ import __version__

__all__ = ["__version__"]
