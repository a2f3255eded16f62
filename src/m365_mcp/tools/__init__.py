"""MCP tool definitions and handlers.

Each module exposes a ``TOOL`` definition and an ``execute_*`` coroutine
that renders Graph data as plain text.
"""

from m365_mcp.tools import auth_status, calendar, chat, files, mail, profile, server_info, transcripts

ALL_TOOLS = [
    auth_status.TOOL,
    profile.TOOL,
    calendar.TOOL,
    mail.TOOL,
    chat.TOOL,
    files.TOOL,
    transcripts.TOOL,
    server_info.TOOL,
]

__all__ = [
    "ALL_TOOLS",
    "auth_status",
    "calendar",
    "chat",
    "files",
    "mail",
    "profile",
    "server_info",
    "transcripts",
]
