"""Server diagnostics tool."""

import os
import platform
import sys
from collections.abc import Mapping
from typing import Any

from mcp.types import Tool

from m365_mcp.__version__ import __version__
from m365_mcp.config import (
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_REDIRECT_URL,
    ENV_TENANT_ID,
    ENV_TIMEZONE,
)

TOOL = Tool(
    name="ms_server_info",
    description="Show m365-mcp version, runtime, available tools, and configuration status.",
    inputSchema={"type": "object", "properties": {}},
)


def execute_server_info(
    tool_names: list[str],
    arguments: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    env = os.environ if environ is None else environ

    def is_set(name: str) -> str:
        return "set" if env.get(name) else "not set"

    lines = [
        f"# m365-mcp v{__version__}",
        f"Python: {sys.version.split()[0]}",
        f"Platform: {platform.system()} {platform.release()}",
        "",
        f"## Tools ({len(tool_names)})",
        *[f"- {name}" for name in tool_names],
        "",
        "## Environment",
        f"- {ENV_CLIENT_ID}: {is_set(ENV_CLIENT_ID)}",
        f"- {ENV_TENANT_ID}: {is_set(ENV_TENANT_ID)}",
        f"- {ENV_CLIENT_SECRET}: {is_set(ENV_CLIENT_SECRET)}",
        f"- {ENV_REDIRECT_URL}: {env.get(ENV_REDIRECT_URL) or 'default (dynamic port)'}",
        f"- {ENV_TIMEZONE}: {env.get(ENV_TIMEZONE) or 'auto'}",
    ]
    return "\n".join(lines)
