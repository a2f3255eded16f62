"""MCP server implementation for Microsoft 365.

Exposes Outlook, Teams, and OneDrive read tools over stdio. Every network
tool obtains its bearer token from the OAuthManager per call, so the first
call after startup may open the browser for sign-in and an expired token is
refreshed transparently.
"""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from m365_mcp.auth import AuthorizationError, CredentialStore, OAuthManager
from m365_mcp.config import AuthConfig, ConfigurationError, load_auth_config, resolve_timezone
from m365_mcp.graph import GraphClient
from m365_mcp.tools import (
    ALL_TOOLS,
    auth_status,
    calendar,
    chat,
    files,
    mail,
    profile,
    server_info,
    transcripts,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVER_NAME = "m365-mcp"

GraphHandler = Callable[[GraphClient, str, dict[str, Any]], Awaitable[str]]


class M365Server:
    """MCP server for Microsoft 365 read access.

    Tools:
    - ms_auth_status: Connection status and interactive sign-in
    - ms_profile: Signed-in user profile
    - ms_calendar: Outlook calendar events
    - ms_mail: Outlook email list and drill-down
    - ms_chat: Teams chats and messages
    - ms_files: OneDrive listing and search
    - ms_transcripts: Teams meeting transcripts
    - ms_server_info: Version and configuration diagnostics
    """

    def __init__(
        self,
        config: AuthConfig | None = None,
        storage: CredentialStore | None = None,
        manager: OAuthManager | None = None,
        graph: GraphClient | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: OAuth settings. Loaded from the environment if not provided.
            storage: Credential store. Creates default if not provided.
            manager: Token lifecycle manager. Built from config and storage
                if not provided.
            graph: Graph client. Built with the resolved timezone if not provided.
        """
        self.config = config or load_auth_config()
        self.storage = storage or CredentialStore()
        self.manager = manager or OAuthManager(self.config, storage=self.storage)
        self.graph = graph or GraphClient(resolve_timezone(self.config))
        self.server = Server(SERVER_NAME)
        self._graph_handlers: dict[str, GraphHandler] = {
            "ms_profile": profile.execute_profile,
            "ms_calendar": calendar.execute_calendar,
            "ms_mail": mail.execute_mail,
            "ms_chat": chat.execute_chat,
            "ms_files": files.execute_files,
            "ms_transcripts": transcripts.execute_transcripts,
        }
        self._setup_handlers()

    async def close(self) -> None:
        """Close the Graph client and release resources."""
        await self.graph.close()

    def _setup_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """List available tools."""
            return list(ALL_TOOLS)

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Handle tool calls."""
            text = await self.handle_tool(name, arguments or {})
            return [TextContent(type="text", text=text)]

    async def handle_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Run a tool and render its result, never raising.

        Args:
            name: Tool name.
            arguments: Tool arguments.

        Returns:
            Tool output text.
        """
        try:
            return await self._dispatch_tool(name, arguments)
        except AuthorizationError as e:
            logger.warning("Sign-in failed during %s: %s", name, e)
            return auth_status.format_not_connected(str(e))
        except Exception as e:
            logger.exception(f"Error calling tool {name}")
            return f"Error: {e}"

    async def _dispatch_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Dispatch tool call to appropriate handler.

        Args:
            name: Tool name.
            arguments: Tool arguments.

        Returns:
            Tool output text.
        """
        if name == "ms_auth_status":
            return await auth_status.execute_auth_status(self.manager, self.graph, arguments)

        if name == "ms_server_info":
            return server_info.execute_server_info([tool.name for tool in ALL_TOOLS], arguments)

        handler = self._graph_handlers.get(name)
        if handler is None:
            return f"Unknown tool: {name}"

        token = await self.manager.get_access_token()
        return await handler(self.graph, token, arguments)

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()


def main() -> None:
    """Entry point for the Microsoft 365 MCP server."""
    try:
        config = load_auth_config()
    except ConfigurationError as e:
        # stdout belongs to the MCP transport
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    server = M365Server(config=config)
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
