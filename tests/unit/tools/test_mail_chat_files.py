"""Unit tests for the mail, chat and files tools."""

import httpx
import pytest

from m365_mcp.tools.chat import execute_chat, format_chat_message
from m365_mcp.tools.files import build_files_path, execute_files, format_file_size
from m365_mcp.tools.mail import execute_mail, format_message_summary


def _json(payload: dict, status: int = 200):
    return lambda request: httpx.Response(status, json=payload)


@pytest.mark.unit
class TestMail:
    """Tests for ms_mail."""

    def test_should_format_summary(self) -> None:
        message = {
            "id": "msg-1",
            "subject": "",
            "from": {"emailAddress": {"name": "Ada", "address": "ada@example.com"}},
            "receivedDateTime": None,
            "bodyPreview": "Quick question",
            "isRead": False,
            "importance": "high",
        }

        assert format_message_summary(message) == (
            "## No Subject\n"
            "From: Ada <ada@example.com>\n"
            "Date: N/A\n"
            "Importance: high | Read: No\n"
            "Quick question\n"
            "Message ID: msg-1"
        )

    @pytest.mark.asyncio
    async def test_should_list_recent_messages(self, graph_factory) -> None:
        client, recorder = graph_factory(_json({"value": [{"id": "m1", "isRead": True}]}))

        text = await execute_mail(client, "tok", {})

        assert "Read: Yes" in text
        params = recorder.requests[0].url.params
        assert params["$top"] == "10"
        assert params["$orderby"] == "receivedDateTime desc"
        assert "Prefer" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_should_search_without_ordering(self, graph_factory) -> None:
        client, recorder = graph_factory(_json({"value": []}))

        text = await execute_mail(client, "tok", {"search": "budget review", "count": 99})

        assert text == "No emails found."
        params = recorder.requests[0].url.params
        assert params["$search"] == '"budget review"'
        assert params["$top"] == "25"
        assert "$orderby" not in params

    @pytest.mark.asyncio
    async def test_should_show_full_message(self, graph_factory) -> None:
        message = {
            "subject": "Budget",
            "from": {"emailAddress": {"name": "Ada", "address": "ada@example.com"}},
            "toRecipients": [{"emailAddress": {"address": "bob@example.com"}}],
            "ccRecipients": [],
            "body": {"content": "<div>Numbers&amp;more</div>"},
        }
        client, recorder = graph_factory(_json(message))

        text = await execute_mail(client, "tok", {"message_id": "AAMk/abc="})

        assert text == (
            "# Budget\nFrom: Ada <ada@example.com>\nTo: bob@example.com\nDate: N/A\n\nNumbers&more"
        )
        assert "/me/messages/AAMk%2Fabc%3D" in recorder.requests[0].url.raw_path.decode()

    @pytest.mark.asyncio
    async def test_should_mark_empty_body(self, graph_factory) -> None:
        client, _ = graph_factory(_json({"subject": "Hi", "body": {"content": ""}}))

        text = await execute_mail(client, "tok", {"message_id": "m1"})

        assert text.endswith("\n\n(no body)")


@pytest.mark.unit
class TestChat:
    """Tests for ms_chat."""

    def test_should_format_message(self) -> None:
        message = {"from": {"user": {"displayName": "Ada"}}, "body": {"content": ""}}
        assert format_chat_message(message) == "**Ada** (N/A):\n(empty message)"

    def test_should_fall_back_to_unknown_sender(self) -> None:
        message = {"from": None, "body": {"content": "<p>system</p>"}}
        assert format_chat_message(message) == "**Unknown** (N/A):\nsystem"

    @pytest.mark.asyncio
    async def test_should_list_chats(self, graph_factory) -> None:
        chats = [
            {"id": "19:abc", "topic": None, "chatType": "oneOnOne"},
            {
                "id": "19:def",
                "topic": "Release",
                "chatType": "group",
                "lastMessagePreview": {"body": {"content": "<p>Shipped!</p>"}},
            },
        ]
        client, recorder = graph_factory(_json({"value": chats}))

        text = await execute_chat(client, "tok", {"count": 5})

        assert text == (
            "## oneOnOne chat\nType: oneOnOne\nChat ID: 19:abc\n\n"
            "## Release\nType: group\nLast message (N/A): Shipped!\nChat ID: 19:def"
        )
        params = recorder.requests[0].url.params
        assert params["$top"] == "5"
        assert params["$expand"] == "lastMessagePreview"

    @pytest.mark.asyncio
    async def test_should_report_no_chats(self, graph_factory) -> None:
        client, _ = graph_factory(_json({"value": []}))
        assert await execute_chat(client, "tok", {}) == "No Teams chats found."

    @pytest.mark.asyncio
    async def test_should_read_chat_messages(self, graph_factory) -> None:
        messages = [{"from": {"user": {"displayName": "Ada"}}, "body": {"content": "hi"}}]
        client, recorder = graph_factory(_json({"value": messages}))

        text = await execute_chat(client, "tok", {"chat_id": "19:abc@thread.v2"})

        assert text == "**Ada** (N/A):\nhi"
        raw = recorder.requests[0].url.raw_path.decode()
        assert raw.startswith("/v1.0/me/chats/19%3Aabc%40thread.v2/messages")

    @pytest.mark.asyncio
    async def test_should_report_empty_chat(self, graph_factory) -> None:
        client, _ = graph_factory(_json({"value": []}))
        assert await execute_chat(client, "tok", {"chat_id": "c"}) == (
            "No messages found in this chat."
        )


@pytest.mark.unit
class TestFiles:
    """Tests for ms_files."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (None, "N/A"),
            (0, "0 B"),
            (512, "512 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
            (2 * 1024**4, "2.0 TB"),
        ],
    )
    def test_should_format_sizes(self, size, expected: str) -> None:
        assert format_file_size(size) == expected

    def test_should_build_root_path(self) -> None:
        assert build_files_path({}, 20).startswith("/me/drive/root/children?$top=20")

    def test_should_build_folder_path(self) -> None:
        path = build_files_path({"path": "Documents/Q1 Plans/"}, 5)
        assert path.startswith("/me/drive/root:/Documents/Q1%20Plans:/children?$top=5")

    def test_should_prefer_search(self) -> None:
        path = build_files_path({"search": "budget 2025", "path": "/Docs"}, 5)
        assert path.startswith("/me/drive/root/search(q='budget%202025')")

    @pytest.mark.asyncio
    async def test_should_render_items(self, graph_factory) -> None:
        items = [
            {"name": "Reports", "folder": {"childCount": 3}},
            {"name": "plan.docx", "size": 2048, "file": {}, "webUrl": "https://x/plan.docx"},
        ]
        client, _ = graph_factory(_json({"value": items}))

        text = await execute_files(client, "tok", {})

        assert text == (
            "📁 Reports\n  Items: 3\n  Modified: N/A\n\n"
            "📄 plan.docx\n  Size: 2.0 KB\n  Modified: N/A\n  URL: https://x/plan.docx"
        )

    @pytest.mark.asyncio
    async def test_should_clamp_count(self, graph_factory) -> None:
        client, recorder = graph_factory(_json({"value": []}))

        text = await execute_files(client, "tok", {"count": 500})

        assert text == "No files found."
        assert recorder.requests[0].url.params["$top"] == "50"
