"""Teams chats and chat messages."""

from typing import Any
from urllib.parse import quote

from mcp.types import Tool

from m365_mcp.graph import GraphClient
from m365_mcp.tools.formatting import clamp_int, format_timestamp, strip_html, truncate

DEFAULT_COUNT = 10
MAX_COUNT = 25
PREVIEW_LIMIT = 200

TOOL = Tool(
    name="ms_chat",
    description=(
        "Read Microsoft Teams chats. Without chat_id: lists recent chats. "
        "With chat_id: returns recent messages from that chat."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "count": {
                "type": "integer",
                "description": f"Number of items (1-{MAX_COUNT}, default {DEFAULT_COUNT})",
            },
            "chat_id": {"type": "string", "description": "Chat ID to read messages from"},
        },
    },
)


def _sender_name(message: dict[str, Any]) -> str:
    sender = message.get("from") or {}
    user = sender.get("user") or sender.get("application") or {}
    return user.get("displayName") or "Unknown"


def format_chat(chat: dict[str, Any]) -> str:
    chat_type = chat.get("chatType") or "chat"
    lines = [
        f"## {chat.get('topic') or f'{chat_type} chat'}",
        f"Type: {chat_type}",
    ]
    preview = chat.get("lastMessagePreview") or {}
    if preview:
        content = strip_html((preview.get("body") or {}).get("content") or "")
        when = format_timestamp(preview.get("createdDateTime"))
        lines.append(f"Last message ({when}): {truncate(content, PREVIEW_LIMIT)}")
    lines.append(f"Chat ID: {chat.get('id')}")
    return "\n".join(lines)


def format_chat_message(message: dict[str, Any]) -> str:
    content = strip_html((message.get("body") or {}).get("content") or "")
    when = format_timestamp(message.get("createdDateTime"))
    return f"**{_sender_name(message)}** ({when}):\n{content or '(empty message)'}"


async def execute_chat(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    count = clamp_int(arguments.get("count"), DEFAULT_COUNT, 1, MAX_COUNT)
    chat_id = arguments.get("chat_id")

    if chat_id:
        path = (
            f"/me/chats/{quote(str(chat_id), safe='')}/messages"
            f"?$top={count}&$orderby=createdDateTime desc"
        )
        result = await client.fetch(path, token, timezone=False)
        if not result.ok:
            return f"Error: {result.error.message}"
        messages = (result.data or {}).get("value") or []
        if not messages:
            return "No messages found in this chat."
        return "\n\n".join(format_chat_message(m) for m in messages)

    path = (
        f"/me/chats?$top={count}&$orderby=lastMessagePreview/createdDateTime desc"
        "&$expand=lastMessagePreview&$select=id,topic,chatType,lastMessagePreview"
    )
    result = await client.fetch(path, token, timezone=False)
    if not result.ok:
        return f"Error: {result.error.message}"

    chats = (result.data or {}).get("value") or []
    if not chats:
        return "No Teams chats found."
    return "\n\n".join(format_chat(c) for c in chats)
