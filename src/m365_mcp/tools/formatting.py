"""Shared text and date helpers for tool output."""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")

_HTML_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"</(p|div|tr|li)>", re.IGNORECASE), "\n"),
    (re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL), ""),
    # Teams emoji carry their text in alt
    (re.compile(r'<emoji[^>]*alt="([^"]*)"[^>]*/?>', re.IGNORECASE), r"\1"),
    (re.compile(r"<attachment[^>]*>.*?</attachment>", re.IGNORECASE | re.DOTALL), ""),
    (re.compile(r"<[^>]*>"), ""),
]

_ENTITIES = [
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    # Last, so "&amp;lt;" becomes "&lt;" rather than "<"
    ("&amp;", "&"),
]


def strip_html(content: str) -> str:
    """Convert Outlook/Teams HTML bodies to plain text."""
    text = content
    for pattern, replacement in _HTML_RULES:
        text = pattern.sub(replacement, text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def clamp_int(value: Any, default: int, minimum: int, maximum: int) -> int:
    """Coerce a tool argument to an int within [minimum, maximum]."""
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return min(max(number, minimum), maximum)


def date_range_for_day(date_str: str) -> tuple[str, str] | None:
    """Compute the UTC start/end ISO strings for a YYYY-MM-DD date.

    Returns:
        (start, end) spanning the whole day, or None for an invalid date.
    """
    if not _DATE_RE.match(date_str):
        return None
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return None
    next_day = day + timedelta(days=1)
    return (f"{day.isoformat()}T00:00:00.000Z", f"{next_day.isoformat()}T00:00:00.000Z")


def today_range() -> tuple[str, str]:
    """Date range for the host's current local date."""
    return date_range_for_day(date.today().isoformat())  # type: ignore[return-value]


def resolve_date_range(arguments: dict[str, Any]) -> tuple[str, str] | None:
    """Pick the query range from date, start/end, or today.

    Returns:
        (start, end), or None if "date" is given but malformed.
    """
    if arguments.get("date"):
        return date_range_for_day(str(arguments["date"]))
    if arguments.get("start") and arguments.get("end"):
        return (str(arguments["start"]), str(arguments["end"]))
    return today_range()


def parse_graph_datetime(value: Any) -> datetime | None:
    """Parse a Graph timestamp into an aware datetime.

    Handles "Z" suffixes and Graph's 7-digit fractional seconds. Naive
    values are interpreted as UTC.

    Returns:
        Aware datetime, or None if the value isn't a parseable timestamp.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Any) -> str:
    """Render a Graph UTC timestamp in the host's local time."""
    if not value:
        return "N/A"
    parsed = parse_graph_datetime(value)
    if parsed is None:
        return str(value)
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
