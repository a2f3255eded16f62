"""Outlook mail: recent or searched messages, and single-message drill-down."""

from typing import Any
from urllib.parse import quote

from mcp.types import Tool

from m365_mcp.graph import GraphClient
from m365_mcp.tools.formatting import clamp_int, format_timestamp, strip_html

DEFAULT_COUNT = 10
MAX_COUNT = 25

LIST_FIELDS = "id,subject,from,receivedDateTime,bodyPreview,isRead,importance"
DETAIL_FIELDS = "subject,from,toRecipients,ccRecipients,receivedDateTime,body,importance"

TOOL = Tool(
    name="ms_mail",
    description=(
        "Read Outlook email. Without message_id: lists recent messages "
        "(optionally filtered by search). With message_id: returns the full message."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "count": {
                "type": "integer",
                "description": f"Number of messages (1-{MAX_COUNT}, default {DEFAULT_COUNT})",
            },
            "search": {"type": "string", "description": "Search term"},
            "message_id": {"type": "string", "description": "Message ID for full content"},
        },
    },
)


def _format_address(entry: dict[str, Any] | None) -> str:
    address = (entry or {}).get("emailAddress") or {}
    name = address.get("name") or ""
    email = address.get("address") or ""
    if name and email:
        return f"{name} <{email}>"
    return name or email or "Unknown"


def format_message_summary(message: dict[str, Any]) -> str:
    lines = [
        f"## {message.get('subject') or 'No Subject'}",
        f"From: {_format_address(message.get('from'))}",
        f"Date: {format_timestamp(message.get('receivedDateTime'))}",
        f"Importance: {message.get('importance') or 'normal'} | "
        f"Read: {'Yes' if message.get('isRead') else 'No'}",
    ]
    preview = message.get("bodyPreview")
    if preview:
        lines.append(preview)
    lines.append(f"Message ID: {message.get('id')}")
    return "\n".join(lines)


async def _execute_detail(client: GraphClient, token: str, message_id: str) -> str:
    path = f"/me/messages/{quote(message_id, safe='')}?$select={DETAIL_FIELDS}"
    result = await client.fetch(path, token, timezone=False)
    if not result.ok:
        return f"Error: {result.error.message}"

    message = result.data or {}
    lines = [
        f"# {message.get('subject') or 'No Subject'}",
        f"From: {_format_address(message.get('from'))}",
    ]
    to = ", ".join(_format_address(r) for r in message.get("toRecipients") or [])
    if to:
        lines.append(f"To: {to}")
    cc = ", ".join(_format_address(r) for r in message.get("ccRecipients") or [])
    if cc:
        lines.append(f"Cc: {cc}")
    lines.append(f"Date: {format_timestamp(message.get('receivedDateTime'))}")

    content = (message.get("body") or {}).get("content") or ""
    body = strip_html(content) if content else ""
    lines.append("")
    lines.append(body or "(no body)")
    return "\n".join(lines)


async def execute_mail(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    message_id = arguments.get("message_id")
    if message_id:
        return await _execute_detail(client, token, str(message_id))

    count = clamp_int(arguments.get("count"), DEFAULT_COUNT, 1, MAX_COUNT)
    search = arguments.get("search")

    path = f"/me/messages?$top={count}&$select={LIST_FIELDS}"
    if search:
        # Graph rejects $orderby combined with $search
        path += f'&$search="{quote(str(search))}"'
    else:
        path += "&$orderby=receivedDateTime desc"

    result = await client.fetch(path, token, timezone=False)
    if not result.ok:
        return f"Error: {result.error.message}"

    messages = (result.data or {}).get("value") or []
    if not messages:
        return "No emails found."
    return "\n\n".join(format_message_summary(m) for m in messages)
