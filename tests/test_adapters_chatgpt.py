"""Tests for the ChatGPT adapter."""

import json

import pytest

from chat_central.adapters import ChatGPTAdapter

NOW = 1700000000000
BACKEND = "https://chatgpt.com/backend-api"


@pytest.fixture
def adapter() -> ChatGPTAdapter:
    """Create a fresh adapter instance."""
    return ChatGPTAdapter()


def node(node_id: str, role: str | None, text: str | None, create_time: object = None) -> dict:
    message = None
    if role is not None:
        message = {
            "id": node_id,
            "author": {"role": role},
            "content": {"content_type": "text", "parts": [text] if text is not None else []},
            "create_time": create_time,
        }
    return {"id": node_id, "message": message, "parent": None, "children": []}


@pytest.fixture
def detail_payload() -> dict:
    """A conversation detail response with a system prompt and a tool node."""
    return {
        "conversation_id": "abc-1",
        "title": "Greeting",
        "create_time": 1700000000,
        "update_time": 1700000100,
        "mapping": {
            "root": node("root", None, None),
            "sys": node("sys", "system", "You are ChatGPT"),
            "a1": node("a1", "assistant", "Hello!", 1700000020),
            "tool": node("tool", "tool", "search results", 1700000015),
            "u1": node("u1", "user", "Hi there", 1700000010.5),
        },
    }


def sse(*events: object) -> str:
    frames = [e if isinstance(e, str) else json.dumps(e) for e in events]
    return "".join(f"data: {frame}\n\n" for frame in frames)


def stream_message(msg_id: str, role: str, text: str, create_time: float) -> dict:
    return {
        "id": msg_id,
        "author": {"role": role},
        "content": {"content_type": "text", "parts": [text]},
        "create_time": create_time,
    }


class TestRouting:
    """Tests for URL classification."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            (f"{BACKEND}/conversations?offset=0&limit=28", "list"),
            (f"{BACKEND}/conversation/6789abcd-0000-1111", "detail"),
            (f"{BACKEND}/conversation", "stream"),
            (f"{BACKEND}/conversation/", "stream"),
            (f"{BACKEND}/conversation/abc/textdocs", "unknown"),
        ],
    )
    def test_get_endpoint_type(self, adapter: ChatGPTAdapter, url: str, expected: str) -> None:
        """URLs are classified by path pattern."""
        assert adapter.get_endpoint_type(url) == expected

    def test_should_capture(self, adapter: ChatGPTAdapter) -> None:
        """Only backend conversation endpoints are captured."""
        assert adapter.should_capture(f"{BACKEND}/conversations")
        assert adapter.should_capture(f"{BACKEND}/conversation/abc")
        assert not adapter.should_capture(f"{BACKEND}/me")

    def test_ids_and_urls(self, adapter: ChatGPTAdapter) -> None:
        """Ids come from detail URLs and deep links use /c/."""
        assert adapter.extract_conversation_id(f"{BACKEND}/conversation/abc-1") == "abc-1"
        assert adapter.extract_conversation_id(f"{BACKEND}/conversation") is None
        assert adapter.build_conversation_url("abc-1") == "https://chatgpt.com/c/abc-1"


class TestParseConversationList:
    """Tests for list parsing."""

    def test_items_envelope(self, adapter: ChatGPTAdapter) -> None:
        """Items become conversations with seconds and ISO timestamps resolved."""
        data = {
            "items": [
                {
                    "id": "c1",
                    "title": "Hello",
                    "create_time": 1700000000.123,
                    "update_time": "2024-01-15T10:00:00Z",
                    "snippet": "A short snippet",
                }
            ],
            "total": 1,
        }
        conversations = adapter.parse_conversation_list(data, NOW)

        assert len(conversations) == 1
        conversation = conversations[0]
        assert conversation.id == "chatgpt_c1"
        assert conversation.created_at == 1700000000123
        assert conversation.updated_at == 1705312800000
        assert conversation.preview == "A short snippet"
        assert conversation.message_count == 0
        assert conversation.url == "https://chatgpt.com/c/c1"

    def test_defaults(self, adapter: ChatGPTAdapter) -> None:
        """Missing titles and timestamps fall back to defaults."""
        data = json.dumps({"conversations": [{"id": "c2"}]})
        conversation = adapter.parse_conversation_list(data, NOW)[0]
        assert conversation.title == "New chat"
        assert conversation.created_at == NOW
        assert conversation.updated_at == NOW

    def test_preview_truncated(self, adapter: ChatGPTAdapter) -> None:
        """Snippets are cut to the preview length."""
        data = {"items": [{"id": "c3", "title": "T", "snippet": "x" * 500}]}
        assert len(adapter.parse_conversation_list(data, NOW)[0].preview) == 200

    def test_nested_data_items(self, adapter: ChatGPTAdapter) -> None:
        """Items under data.items are found."""
        data = {"data": {"items": [{"id": "c4", "title": "Nested"}]}}
        assert [c.id for c in adapter.parse_conversation_list(data, NOW)] == ["chatgpt_c4"]

    def test_unusable(self, adapter: ChatGPTAdapter) -> None:
        """Unknown envelopes and items without id yield nothing."""
        assert adapter.parse_conversation_list({"foo": []}, NOW) == []
        assert adapter.parse_conversation_list({"items": [{"title": "no id"}]}, NOW) == []


class TestParseConversationDetail:
    """Tests for detail parsing."""

    def test_mapping(self, adapter: ChatGPTAdapter, detail_payload: dict) -> None:
        """Visible turns are collected and ordered by time, not tree position."""
        result = adapter.parse_conversation_detail(detail_payload, NOW)

        assert result is not None
        conversation, messages = result.conversation, result.messages
        assert [m.id for m in messages] == ["chatgpt_u1", "chatgpt_a1"]
        assert [m.created_at for m in messages] == [1700000010500, 1700000020000]
        assert conversation.id == "chatgpt_abc-1"
        assert conversation.title == "Greeting"
        assert conversation.created_at == 1700000000000
        assert conversation.updated_at == 1700000020000
        assert conversation.message_count == 2
        assert conversation.preview == "Hi there"
        assert conversation.detail_status == "full"

    def test_system_node_excluded(self, adapter: ChatGPTAdapter) -> None:
        """A user node and a system node produce exactly one message."""
        data = {
            "conversation_id": "abc-2",
            "mapping": {
                "s": node("s", "system", "system prompt", 1700000000),
                "u": node("u", "user", "question", 1700000001),
            },
        }
        result = adapter.parse_conversation_detail(data, NOW)
        assert result is not None
        assert len(result.messages) == 1
        assert result.messages[0].role == "user"

    def test_untitled_uses_first_user_message(self, adapter: ChatGPTAdapter) -> None:
        """Untitled details are named after the earliest user message."""
        data = {
            "conversation_id": "abc-4",
            "mapping": {
                "a": node("a", "assistant", "Happy to help", 1700000002),
                "u": node("u", "user", "Plan my trip to Kyoto", 1700000001),
            },
        }
        result = adapter.parse_conversation_detail(data, NOW)
        assert result is not None
        assert result.conversation.title == "Plan my trip to Kyoto"

    def test_untitled_without_user_message(self, adapter: ChatGPTAdapter) -> None:
        """Without a title or a user message the default title is used."""
        data = {"conversation_id": "abc-5", "mapping": {"a": node("a", "assistant", "Hello", 1700000002)}}
        result = adapter.parse_conversation_detail(data, NOW)
        assert result is not None
        assert result.conversation.title == "New chat"

    def test_stream_captured_detail(self, adapter: ChatGPTAdapter, detail_payload: dict) -> None:
        """The last event with a mapping is used for stream-captured details."""
        data = {"isStream": True, "events": [{"v": "delta"}, detail_payload, {"type": "done"}]}
        result = adapter.parse_conversation_detail(data, NOW)
        assert result is not None
        assert result.conversation.original_id == "abc-1"

    def test_stream_captured_without_mapping(self, adapter: ChatGPTAdapter) -> None:
        """Stream-captured details without a mapping are unusable."""
        data = {"isStream": True, "events": [{"v": "delta"}]}
        assert adapter.parse_conversation_detail(data, NOW) is None

    def test_no_visible_messages(self, adapter: ChatGPTAdapter) -> None:
        """Only system nodes means a failed parse."""
        data = {"conversation_id": "abc-3", "mapping": {"s": node("s", "system", "prompt")}}
        assert adapter.parse_conversation_detail(data, NOW) is None

    def test_missing_id(self, adapter: ChatGPTAdapter, detail_payload: dict) -> None:
        """Details without a conversation id are rejected."""
        del detail_payload["conversation_id"]
        assert adapter.parse_conversation_detail(detail_payload, NOW) is None


class TestParseStreamResponse:
    """Tests for stream parsing."""

    def test_dedupes_frames_and_assigns_trailing_id(self, adapter: ChatGPTAdapter) -> None:
        """Frames merge by id and the trailing conversation id is applied."""
        raw = sse(
            {"message": stream_message("u1", "user", "What is 2+2?", 1700000000)},
            {"message": stream_message("a1", "assistant", "It", 1700000001)},
            {"message": stream_message("a1", "assistant", "It is 4.", 1700000002)},
            {"conversation_id": "conv-9", "message": stream_message("a1", "assistant", "It is", 1700000003)},
            "[DONE]",
        )
        result = adapter.parse_stream_response(raw, f"{BACKEND}/conversation", NOW)

        assert result is not None
        conversation, messages = result.conversation, result.messages
        assert conversation.id == "chatgpt_conv-9"
        assert conversation.title == "What is 2+2?"
        assert conversation.detail_status == "partial"
        assert [m.content for m in messages] == ["What is 2+2?", "It is 4."]
        assert messages[1].created_at == 1700000001000
        assert all(m.conversation_id == "chatgpt_conv-9" for m in messages)

    def test_title_from_first_message_without_user(self, adapter: ChatGPTAdapter) -> None:
        """Without a user turn the earliest message names the conversation."""
        raw = sse(
            {"conversation_id": "conv-10"},
            {"message": stream_message("a1", "assistant", "Continuing...", 1700000001)},
        )
        result = adapter.parse_stream_response(raw, f"{BACKEND}/conversation", NOW)
        assert result is not None
        assert result.conversation.title == "Continuing..."

    def test_without_conversation_id(self, adapter: ChatGPTAdapter) -> None:
        """A stream that never names its conversation yields None."""
        raw = sse({"message": stream_message("u1", "user", "hi", 1700000000)})
        assert adapter.parse_stream_response(raw, f"{BACKEND}/conversation", NOW) is None

    def test_malformed_frames_skipped(self, adapter: ChatGPTAdapter) -> None:
        """Undecodable frames are ignored."""
        raw = sse("{truncated", {"message": stream_message("u1", "user", "hi", 1700000000)})
        result = adapter.parse_stream_response(raw, f"{BACKEND}/conversation/abc-5", NOW)
        assert result is not None
        assert result.conversation.original_id == "abc-5"
