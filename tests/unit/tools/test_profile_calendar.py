"""Unit tests for the profile and calendar tools."""

import httpx
import pytest

from m365_mcp.tools.calendar import execute_calendar, format_event
from m365_mcp.tools.profile import execute_profile, fetch_profile_summary


def _json(payload: dict, status: int = 200):
    return lambda request: httpx.Response(status, json=payload)


@pytest.mark.unit
class TestProfile:
    """Tests for ms_profile."""

    @pytest.mark.asyncio
    async def test_should_render_profile(self, graph_factory) -> None:
        client, recorder = graph_factory(
            _json(
                {
                    "displayName": "Ada Lovelace",
                    "mail": "ada@example.com",
                    "jobTitle": "Analyst",
                    "officeLocation": "London",
                }
            )
        )

        text = await execute_profile(client, "tok", {})

        assert text == (
            "Name: Ada Lovelace\nEmail: ada@example.com\nJob Title: Analyst\nOffice: London"
        )
        assert recorder.requests[0].url.path == "/v1.0/me"

    @pytest.mark.asyncio
    async def test_should_default_missing_fields(self, graph_factory) -> None:
        client, _ = graph_factory(_json({"userPrincipalName": "ada@corp.example"}))

        text = await execute_profile(client, "tok", {})

        assert text == "Name: N/A\nEmail: ada@corp.example\nJob Title: N/A\nOffice: N/A"

    @pytest.mark.asyncio
    async def test_should_render_error(self, graph_factory) -> None:
        client, _ = graph_factory(_json({}, status=403))

        text = await execute_profile(client, "tok", {})

        assert text == "Error: Insufficient permissions. Check granted scopes with ms_auth_status."

    @pytest.mark.asyncio
    async def test_summary_should_use_unknown_defaults(self, graph_factory) -> None:
        client, _ = graph_factory(_json({}))
        assert await fetch_profile_summary(client, "tok") == "Unknown (Unknown)"

    @pytest.mark.asyncio
    async def test_summary_should_be_none_on_failure(self, graph_factory) -> None:
        client, _ = graph_factory(_json({}, status=500))
        assert await fetch_profile_summary(client, "tok") is None


@pytest.mark.unit
class TestFormatEvent:
    """Tests for calendar event rendering."""

    def test_should_render_full_event(self) -> None:
        event = {
            "subject": "Design Review",
            "start": {"dateTime": "2025-01-15T10:00:00.0000000"},
            "end": {"dateTime": "2025-01-15T11:00:00.0000000"},
            "location": {"displayName": "Room 4"},
            "organizer": {"emailAddress": {"name": "Grace Hopper"}},
            "attendees": [{"emailAddress": {"name": "Ada"}}, {"emailAddress": {}}],
            "body": {"contentType": "html", "content": "<p>Agenda&nbsp;items</p>"},
        }

        assert format_event(event) == (
            "## Design Review\n"
            "Time: 2025-01-15T10:00:00.0000000 - 2025-01-15T11:00:00.0000000\n"
            "Location: Room 4\n"
            "Organizer: Grace Hopper\n"
            "Attendees: Ada\n"
            "\n"
            "Agenda items"
        )

    def test_should_render_all_day_event(self) -> None:
        assert format_event({"subject": "Holiday", "isAllDay": True}) == (
            "## Holiday\nTime: All day"
        )

    def test_should_truncate_long_body(self) -> None:
        event = {"isAllDay": True, "body": {"content": "z" * 600}}

        text = format_event(event)

        assert text.startswith("## Untitled\n")
        assert text.endswith("z" * 500 + "...")


@pytest.mark.unit
class TestCalendar:
    """Tests for ms_calendar."""

    @pytest.mark.asyncio
    async def test_should_query_calendar_view(self, graph_factory) -> None:
        client, recorder = graph_factory(_json({"value": [{"subject": "A", "isAllDay": True}]}))

        text = await execute_calendar(client, "tok", {"date": "2025-01-15"})

        assert text == "## A\nTime: All day"
        request = recorder.requests[0]
        assert request.url.path == "/v1.0/me/calendarView"
        assert request.url.params["startDateTime"] == "2025-01-15T00:00:00.000Z"
        assert "body" in request.url.params["$select"].split(",")
        assert "Prefer" in request.headers

    @pytest.mark.asyncio
    async def test_should_separate_events(self, graph_factory) -> None:
        events = [{"subject": "A", "isAllDay": True}, {"subject": "B", "isAllDay": True}]
        client, _ = graph_factory(_json({"value": events}))

        text = await execute_calendar(client, "tok", {})

        assert text == "## A\nTime: All day\n\n## B\nTime: All day"

    @pytest.mark.asyncio
    async def test_should_report_empty_range(self, graph_factory) -> None:
        client, _ = graph_factory(_json({"value": []}))

        text = await execute_calendar(client, "tok", {"start": "s", "end": "e"})

        assert text == "No calendar events found for the specified date range."

    @pytest.mark.asyncio
    async def test_should_reject_bad_date(self, graph_factory) -> None:
        client, recorder = graph_factory(_json({}))

        assert await execute_calendar(client, "tok", {"date": "nope"}) == (
            "Error: Invalid date format. Expected YYYY-MM-DD."
        )
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_should_render_error(self, graph_factory) -> None:
        client, _ = graph_factory(_json({}, status=404))

        text = await execute_calendar(client, "tok", {})

        assert text == (
            "Error: Resource not found. Your account may not have an Exchange Online license."
        )
