"""Teams meeting transcripts.

Two modes:

- List: find calendar events with Teams join URLs in a date range, look up
  the transcripts recorded for each meeting, and return compound transcript
  IDs ("{meetingId}/{transcriptId}").
- Drill-down: fetch the WebVTT content for a compound ID, paginated by
  character offset.

A Teams meeting ID is shared by every occurrence of a recurring series, so
the transcript list for a meeting covers all occurrences. Each calendar
occurrence is matched to the transcript created closest to its start time.
"""

import asyncio
import base64
import json
import logging
from typing import Any
from urllib.parse import parse_qs, quote, unquote, urlparse

from mcp.types import Tool

from m365_mcp.graph import GraphClient
from m365_mcp.tools.formatting import clamp_int, parse_graph_datetime, resolve_date_range

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10_000
MAX_CHUNK_SIZE = 50_000

# Event times are in the user's preferred timezone while transcript
# timestamps are UTC; a day absorbs any offset and still separates
# occurrences of daily (or less frequent) meetings.
MAX_MATCH_DISTANCE_SECONDS = 24 * 60 * 60

# Meeting subject lookup also tolerates 404 on v1.0
SUBJECT_RETRY_STATUSES = (400, 403, 404)

TOOL = Tool(
    name="ms_transcripts",
    description=(
        "Fetch meeting transcripts from Microsoft Teams. "
        "Without transcript_id: lists meetings that have transcripts. "
        "With transcript_id: returns transcript content in chunks (default 10,000 chars). "
        "Use offset to paginate through long transcripts."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "date": {"type": "string", "description": "Date (YYYY-MM-DD)"},
            "start": {"type": "string", "description": "Start of date range (ISO 8601)"},
            "end": {"type": "string", "description": "End of date range (ISO 8601)"},
            "transcript_id": {
                "type": "string",
                "description": "Transcript ID for content drill-down (from a previous list call)",
            },
            "offset": {
                "type": "integer",
                "description": (
                    "Character offset for pagination (default 0). "
                    "Use the value from the previous response to continue reading."
                ),
            },
            "length": {
                "type": "integer",
                "description": "Max characters to return (default 10000, max 50000)",
            },
        },
    },
)


def extract_meeting_id(join_url: str) -> str | None:
    """Derive the Graph online meeting ID from a Teams join URL.

    Join URL format:
        https://teams.microsoft.com/l/meetup-join/{threadId}/0?context={"Tid":"...","Oid":"..."}

    Meeting ID = base64("1*{organizerOid}*0**{threadId}")

    Returns:
        The meeting ID, or None if the URL doesn't carry enough information.
    """
    try:
        url = urlparse(join_url)
    except ValueError:
        return None

    parts = url.path.split("/")
    if "meetup-join" not in parts:
        return None
    join_idx = parts.index("meetup-join")
    if join_idx + 1 >= len(parts) or not parts[join_idx + 1]:
        return None
    thread_id = unquote(parts[join_idx + 1])

    context_values = parse_qs(url.query).get("context")
    if not context_values:
        return None

    try:
        context = json.loads(context_values[0])
    except ValueError:
        return None
    if not isinstance(context, dict):
        return None

    organizer_oid = context.get("Oid")
    if not organizer_oid:
        return None

    raw = f"1*{organizer_oid}*0**{thread_id}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def format_transcript_id(meeting_id: str, transcript_id: str) -> str:
    """Build the compound transcript ID returned to callers."""
    return f"{meeting_id}/{transcript_id}"


def parse_transcript_id(compound_id: str) -> tuple[str, str] | None:
    """Split a compound ID "{meetingId}/{transcriptId}" at the first slash.

    Returns:
        (meeting_id, transcript_id), or None if either side is empty.
    """
    meeting_id, slash, transcript_id = compound_id.partition("/")
    if not slash or not meeting_id or not transcript_id:
        return None
    return (meeting_id, transcript_id)


def match_transcripts_to_event(
    transcripts: list[dict[str, Any]], event: dict[str, Any]
) -> list[dict[str, Any]]:
    """Pick the transcript(s) belonging to one calendar occurrence.

    With several transcripts (a recurring meeting), returns the one created
    closest to the event start, provided it's within 24 hours; otherwise
    none. When there's nothing to compare (one transcript, no event start,
    or no transcript timestamps) the input is returned unchanged.
    """
    if len(transcripts) <= 1:
        return transcripts

    event_start = parse_graph_datetime((event.get("start") or {}).get("dateTime"))
    if event_start is None:
        return transcripts

    closest: dict[str, Any] | None = None
    closest_diff = float("inf")

    for transcript in transcripts:
        created = parse_graph_datetime(transcript.get("createdDateTime"))
        if created is None:
            continue
        diff = abs((created - event_start).total_seconds())
        if diff < closest_diff:
            closest = transcript
            closest_diff = diff

    if closest is None:
        return transcripts

    if closest_diff <= MAX_MATCH_DISTANCE_SECONDS:
        return [closest]

    # Closest transcript belongs to another occurrence
    return []


def _meeting_path(meeting_id: str) -> str:
    return f"/me/onlineMeetings/{quote(meeting_id, safe='')}"


async def fetch_transcript_list(
    client: GraphClient, token: str, meeting_id: str
) -> list[dict[str, Any]]:
    """List transcripts for one meeting, falling back to beta on 403/400.

    Returns:
        Transcript entries carrying an id, or an empty list if they couldn't be fetched.
    """
    result = await client.fetch_with_fallback(f"{_meeting_path(meeting_id)}/transcripts", token)
    if not result.ok:
        logger.info("No transcripts for meeting: %s", result.error.message)
        return []
    payload = result.data if isinstance(result.data, dict) else {}
    entries = payload.get("value") or []
    if not isinstance(entries, list):
        return []
    return [t for t in entries if isinstance(t, dict) and t.get("id")]


async def fetch_transcript_content(
    client: GraphClient, token: str, meeting_id: str, transcript_id: str
) -> str | None:
    """Download WebVTT content, falling back to beta on 403/400."""
    path = (
        f"{_meeting_path(meeting_id)}/transcripts/{quote(transcript_id, safe='')}"
        "/content?$format=text/vtt"
    )
    result = await client.fetch_with_fallback(path, token, text=True)
    if not result.ok:
        return None
    return result.data or None


async def _fetch_meeting_subject(client: GraphClient, token: str, meeting_id: str) -> str:
    result = await client.fetch_with_fallback(
        f"{_meeting_path(meeting_id)}?$select=subject",
        token,
        retry_statuses=SUBJECT_RETRY_STATUSES,
    )
    if result.ok and (result.data or {}).get("subject"):
        return result.data["subject"]
    return "(Unknown meeting)"


async def _execute_drill_down(
    client: GraphClient, token: str, compound_id: str, offset: int, length: int
) -> str:
    parsed = parse_transcript_id(compound_id)
    if parsed is None:
        return 'Error: Invalid transcript_id format. Expected "{meetingId}/{transcriptId}".'
    meeting_id, transcript_id = parsed

    vtt = await fetch_transcript_content(client, token, meeting_id, transcript_id)
    if vtt is None:
        return (
            "Error: Could not fetch transcript content. "
            "The transcript may have been deleted or you may lack permissions."
        )

    subject = await _fetch_meeting_subject(client, token, meeting_id)
    total_length = len(vtt)

    if total_length <= length:
        return f"# Transcript: {subject}\nLength: {total_length} chars (complete)\n\n{vtt}"

    chunk = vtt[offset : offset + length]
    end = offset + len(chunk)
    remaining = total_length - end

    lines = [
        f"# Transcript: {subject}",
        f"Length: {total_length} chars | Showing: {offset}-{end} | Remaining: {remaining}",
        "",
        chunk,
    ]
    if remaining > 0:
        lines.append("")
        lines.append(
            f'--- To continue reading, call again with transcript_id="{compound_id}" '
            f"offset={end} ---"
        )
    return "\n".join(lines)


def _format_meeting_section(event: dict[str, Any], compound_id: str) -> str:
    lines = [
        f"## {event.get('subject') or 'Untitled'}",
        f"Date: {(event.get('start') or {}).get('dateTime') or 'N/A'}",
    ]
    names = [
        (a.get("emailAddress") or {}).get("name")
        for a in event.get("attendees") or []
    ]
    attendee_names = ", ".join(name for name in names if name)
    if attendee_names:
        lines.append(f"Attendees: {attendee_names}")
    lines.append(f"Transcript ID: {compound_id}")
    return "\n".join(lines)


def _join_url(event: dict[str, Any]) -> str | None:
    return (event.get("onlineMeeting") or {}).get("joinUrl")


async def _execute_list(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    date_range = resolve_date_range(arguments)
    if date_range is None:
        return "Error: Invalid date format. Expected YYYY-MM-DD."
    start, end = date_range

    select = "subject,start,end,attendees,organizer,onlineMeeting"
    path = (
        f"/me/calendarView?startDateTime={start}&endDateTime={end}"
        f"&$orderby=start/dateTime&$top=50&$select={select}"
    )
    result = await client.fetch(path, token, timezone=True)
    if not result.ok:
        return f"Error: {result.error.message}"

    events = (result.data or {}).get("value") or []
    meeting_events = [e for e in events if _join_url(e)]
    if not meeting_events:
        return "No Teams meetings found in the given date range."

    # joinUrl -> meeting ID; recurring occurrences share both
    meeting_ids: dict[str, str] = {}
    for event in meeting_events:
        join_url = _join_url(event)
        if join_url in meeting_ids:
            continue
        meeting_id = extract_meeting_id(join_url)
        if meeting_id:
            meeting_ids[join_url] = meeting_id

    # One transcript-list fetch per unique meeting, in parallel
    unique_ids = list(dict.fromkeys(meeting_ids.values()))
    fetched = await asyncio.gather(
        *[fetch_transcript_list(client, token, mid) for mid in unique_ids],
        return_exceptions=True,
    )
    transcript_cache: dict[str, list[dict[str, Any]]] = {}
    for meeting_id, transcripts in zip(unique_ids, fetched, strict=True):
        if isinstance(transcripts, BaseException):
            logger.warning("Failed to list transcripts: %s", transcripts)
            transcripts = []
        transcript_cache[meeting_id] = transcripts

    sections = []
    for event in meeting_events:
        meeting_id = meeting_ids.get(_join_url(event))
        if not meeting_id:
            continue
        candidates = transcript_cache.get(meeting_id) or []
        if not candidates:
            continue

        matched = match_transcripts_to_event(candidates, event)
        if not matched:
            continue

        compound_id = format_transcript_id(meeting_id, matched[0].get("id"))
        sections.append(_format_meeting_section(event, compound_id))

    if not sections:
        meeting_list = "\n".join(
            f"- {e.get('subject') or 'Untitled'} ({(e.get('start') or {}).get('dateTime') or 'N/A'})"
            for e in meeting_events
        )
        return (
            f"Found {len(meeting_events)} Teams meetings, but none have transcripts recorded."
            f"\n\n{meeting_list}"
        )

    header = f"Found {len(meeting_events)} meetings, {len(sections)} with transcripts."
    return header + "\n\n" + "\n\n---\n\n".join(sections)


async def execute_transcripts(client: GraphClient, token: str, arguments: dict[str, Any]) -> str:
    """List meetings with transcripts, or return one transcript's content."""
    transcript_id = arguments.get("transcript_id")
    if transcript_id:
        offset = max(clamp_int(arguments.get("offset"), 0, 0, 2**31), 0)
        length = clamp_int(arguments.get("length"), DEFAULT_CHUNK_SIZE, 1, MAX_CHUNK_SIZE)
        return await _execute_drill_down(client, token, str(transcript_id), offset, length)
    return await _execute_list(client, token, arguments)
