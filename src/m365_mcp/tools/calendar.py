"""Outlook calendar events for a day or date range."""

from typing import Any

from mcp.types import Tool

from m365_mcp.graph import GraphClient
from m365_mcp.tools.formatting import resolve_date_range, strip_html, truncate

BODY_PREVIEW_LIMIT = 500

EVENT_FIELDS = "subject,start,end,location,organizer,attendees,body,isAllDay"

TOOL = Tool(
    name="ms_calendar",
    description=(
        "Get Outlook calendar events. Defaults to today. "
        "Pass date (YYYY-MM-DD) for a single day, or start and end for a range."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "date": {"type": "string", "description": "Date (YYYY-MM-DD)"},
            "start": {"type": "string", "description": "Start of date range (ISO 8601)"},
            "end": {"type": "string", "description": "End of date range (ISO 8601)"},
        },
    },
)


def format_event(event: dict[str, Any]) -> str:
    """Render one calendar event as a markdown section."""
    lines = [f"## {event.get('subject') or 'Untitled'}"]

    if event.get("isAllDay"):
        lines.append("Time: All day")
    else:
        start = (event.get("start") or {}).get("dateTime") or "N/A"
        end = (event.get("end") or {}).get("dateTime") or "N/A"
        lines.append(f"Time: {start} - {end}")

    location = (event.get("location") or {}).get("displayName")
    if location:
        lines.append(f"Location: {location}")

    organizer = ((event.get("organizer") or {}).get("emailAddress") or {}).get("name")
    if organizer:
        lines.append(f"Organizer: {organizer}")

    names = [(a.get("emailAddress") or {}).get("name") for a in event.get("attendees") or []]
    attendees = ", ".join(name for name in names if name)
    if attendees:
        lines.append(f"Attendees: {attendees}")

    body = (event.get("body") or {}).get("content") or ""
    if body:
        text = strip_html(body)
        if text:
            lines.append("")
            lines.append(truncate(text, BODY_PREVIEW_LIMIT))

    return "\n".join(lines)


async def execute_calendar(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    date_range = resolve_date_range(arguments)
    if date_range is None:
        return "Error: Invalid date format. Expected YYYY-MM-DD."
    start, end = date_range

    path = (
        f"/me/calendarView?startDateTime={start}&endDateTime={end}"
        f"&$orderby=start/dateTime&$top=50&$select={EVENT_FIELDS}"
    )
    result = await client.fetch(path, token, timezone=True)
    if not result.ok:
        return f"Error: {result.error.message}"

    events = (result.data or {}).get("value") or []
    if not events:
        return "No calendar events found for the specified date range."
    return "\n\n".join(format_event(event) for event in events)
