"""OneDrive file listing and search."""

from typing import Any
from urllib.parse import quote

from mcp.types import Tool

from m365_mcp.graph import GraphClient
from m365_mcp.tools.formatting import clamp_int, format_timestamp

DEFAULT_COUNT = 20
MAX_COUNT = 50

FILE_FIELDS = "name,size,lastModifiedDateTime,webUrl,file,folder"

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]

TOOL = Tool(
    name="ms_files",
    description=(
        "List or search OneDrive files. Defaults to the root folder. "
        "Pass path (e.g. /Documents) to list a folder, or search to find files by name."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Folder path relative to the drive root"},
            "search": {"type": "string", "description": "Search query"},
            "count": {
                "type": "integer",
                "description": f"Number of items (1-{MAX_COUNT}, default {DEFAULT_COUNT})",
            },
        },
    },
)


def format_file_size(size: Any) -> str:
    """Render a byte count as B/KB/MB/GB/TB."""
    if size is None:
        return "N/A"
    value = float(size)
    if value == 0:
        return "0 B"
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {_SIZE_UNITS[unit]}"


def format_drive_item(item: dict[str, Any]) -> str:
    icon = "📁" if item.get("folder") is not None else "📄"
    lines = [f"{icon} {item.get('name') or 'Untitled'}"]
    if item.get("folder") is not None:
        lines.append(f"  Items: {(item.get('folder') or {}).get('childCount', 'N/A')}")
    else:
        lines.append(f"  Size: {format_file_size(item.get('size'))}")
    lines.append(f"  Modified: {format_timestamp(item.get('lastModifiedDateTime'))}")
    if item.get("webUrl"):
        lines.append(f"  URL: {item['webUrl']}")
    return "\n".join(lines)


def build_files_path(arguments: dict[str, Any], count: int) -> str:
    search = arguments.get("search")
    folder = arguments.get("path")
    query = f"?$top={count}&$select={FILE_FIELDS}"

    if search:
        return f"/me/drive/root/search(q='{quote(str(search), safe='')}'){query}"
    if folder and str(folder).strip("/"):
        normalized = "/" + str(folder).strip("/")
        return f"/me/drive/root:{quote(normalized)}:/children{query}"
    return f"/me/drive/root/children{query}"


async def execute_files(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    count = clamp_int(arguments.get("count"), DEFAULT_COUNT, 1, MAX_COUNT)
    result = await client.fetch(build_files_path(arguments, count), token, timezone=False)
    if not result.ok:
        return f"Error: {result.error.message}"

    items = (result.data or {}).get("value") or []
    if not items:
        return "No files found."
    return "\n\n".join(format_drive_item(item) for item in items)
