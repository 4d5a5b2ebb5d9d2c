"""Tests for the Gemini adapter."""

import json

import pytest

from chat_central.adapters import GeminiAdapter
from chat_central.adapters.gemini.detail import (
    DetailState,
    find_message_id,
    normalize_message_timestamp,
    parse_detail_payload,
)
from chat_central.adapters.gemini.ids import (
    is_conversation_id,
    is_response_id,
    is_string_array,
    looks_like_id,
    normalize_conversation_id,
)
from chat_central.adapters.gemini.listing import build_conversation
from chat_central.adapters.gemini.payload import (
    extract_wrb_payloads,
    get_payload_sources,
    normalize_payloads,
)
from chat_central.common import content_hash

NOW = 1700000000000
BATCH_URL = "https://gemini.google.com/_/BardChatUi/data/batchexecute?rpcids=hNvQHb"


@pytest.fixture
def adapter() -> GeminiAdapter:
    """Create a fresh adapter instance."""
    return GeminiAdapter()


def batch_body(*payloads: object, rpc_id: str = "hNvQHb") -> str:
    """Build a batchexecute response body with length lines like the real endpoint."""
    envelope = json.dumps(
        [["wrb.fr", rpc_id, json.dumps(payload), None, None, None, "generic"] for payload in payloads]
    )
    return f")]}}'\n\n{len(envelope)}\n{envelope}\n25\n[[\"e\",4,null,null,131]]\n"


def turn_batch(conv_id: str, user_text: str, reply_id: str, reply_text: str, seconds: int,
               user_hash: str = "hash1") -> list:
    """One positional turn batch wrapped with its [seconds, nanos] timestamp."""
    return [
        [
            [conv_id, "r_resp"],
            None,
            [[user_text], 2, None, 0, user_hash, 0],
            [[[reply_id, [reply_text], None, None, None, None, None]]],
        ],
        [seconds, 0],
    ]


class TestIds:
    """Tests for id shape helpers."""

    def test_conversation_ids(self) -> None:
        """Conversation ids carry the c_ prefix."""
        assert is_conversation_id("c_abc123")
        assert is_conversation_id("C_ABC")
        assert not is_conversation_id("rc_abc")
        assert not is_conversation_id(42)

    def test_response_ids(self) -> None:
        """Response ids carry an rc_ or r_ prefix."""
        assert is_response_id("rc_abc")
        assert is_response_id("r_abc")
        assert not is_response_id("c_abc")

    def test_normalize_conversation_id(self) -> None:
        """The c_ prefix is dropped."""
        assert normalize_conversation_id("c_abc") == "abc"
        assert normalize_conversation_id("abc") == "abc"

    def test_is_string_array(self) -> None:
        """Only lists of strings qualify."""
        assert is_string_array(["a", "b"])
        assert is_string_array([])
        assert not is_string_array(["a", 1])
        assert not is_string_array("ab")

    def test_looks_like_id(self) -> None:
        """Ids and URLs are not titles."""
        assert looks_like_id("c_y")
        assert looks_like_id("rc_1")
        assert looks_like_id("https://example.com")
        assert not looks_like_id("Trip to Kyoto")


class TestPayloads:
    """Tests for batchexecute unwrapping."""

    def test_normalize_decoded_values(self) -> None:
        """Decoded values are wrapped as a single payload."""
        assert normalize_payloads([1]) == [[1]]
        assert normalize_payloads({"a": 1}) == [{"a": 1}]
        assert normalize_payloads(None) == []
        assert normalize_payloads(")]}'") == []

    def test_wrb_payloads_are_decoded(self) -> None:
        """Each wrb.fr envelope yields its decoded inner payload."""
        sources = get_payload_sources(batch_body([1, 2], {"k": "v"}))
        assert sources == [[1, 2], {"k": "v"}]

    def test_wrb_inside_json_string(self) -> None:
        """Envelopes nested inside JSON strings are found."""
        nested = json.dumps([["wrb.fr", "x", json.dumps(["inner"])]])
        assert extract_wrb_payloads([[nested]]) == [["inner"]]

    def test_no_envelope_falls_back_to_candidates(self) -> None:
        """Without envelopes the raw candidates are the sources."""
        assert get_payload_sources('[["c_abc", "Title"]]') == [[["c_abc", "Title"]]]


class TestListParsing:
    """Tests for list parsing."""

    def test_build_conversation(self) -> None:
        """List-level conversations use the normalized id and app URL."""
        conversation = build_conversation("c_abc123", "Test Title", 1700000000000, NOW + 1000)
        assert conversation.id == "gemini_abc123"
        assert conversation.original_id == "abc123"
        assert conversation.created_at == 1700000000000
        assert conversation.updated_at == 1700000000000
        assert conversation.url == "https://gemini.google.com/app/abc123"
        assert conversation.detail_status == "none"

    def test_build_conversation_without_timestamp(self) -> None:
        """A missing timestamp falls back to now."""
        conversation = build_conversation("c_abc", "Title", None, NOW)
        assert conversation.created_at == NOW

    def test_array_records(self, adapter: GeminiAdapter) -> None:
        """Positional records are recognized and id-like titles rejected."""
        payload = [
            [
                ["c_abc123", "My Conversation", None, None, None, None, None, None, None, None,
                 [1700000000, 0]],
                ["c_x", "c_y", None, [1700000000, 0]],
                ["c_z", "https://gemini.google.com/app/z", None, [1700000000, 0]],
                ["c_nots", "No timestamp", None],
            ]
        ]
        conversations = adapter.parse_conversation_list(batch_body(payload), NOW)

        assert [c.id for c in conversations] == ["gemini_abc123"]
        assert conversations[0].title == "My Conversation"
        assert conversations[0].created_at == 1700000000000

    def test_object_records(self, adapter: GeminiAdapter) -> None:
        """Object records are read through key aliases."""
        payload = [
            {"conversationId": "c_abc", "title": "Object Chat", "createdAt": 1700000000000},
            {"c": "c_def", "t": "Alias Chat"},
            {"id": "c_ghi", "name": "rc_123"},
        ]
        conversations = adapter.parse_conversation_list(payload, NOW)
        assert {c.id: c.title for c in conversations} == {
            "gemini_abc": "Object Chat",
            "gemini_def": "Alias Chat",
        }
        assert {c.id: c.created_at for c in conversations}["gemini_def"] == NOW

    def test_duplicates_keep_latest(self, adapter: GeminiAdapter) -> None:
        """Duplicates across payloads keep the later updated_at."""
        first = [["c_abc", "Old title", None, [1700000000, 0]]]
        second = [["c_abc", "New title", None, [1700000500, 0]]]
        conversations = adapter.parse_conversation_list(batch_body(first, second), NOW)
        assert len(conversations) == 1
        assert conversations[0].title == "New title"
        assert conversations[0].updated_at == 1700000500000

    def test_no_data(self, adapter: GeminiAdapter) -> None:
        """Empty bodies yield nothing."""
        assert adapter.parse_conversation_list("", NOW) == []
        assert adapter.parse_conversation_list(None, NOW) == []


class TestDetailHelpers:
    """Tests for detail traversal helpers."""

    def test_timestamp_tie_breaker(self) -> None:
        """Repeated timestamps get an increasing tie-breaker."""
        state = DetailState()
        assert normalize_message_timestamp(state, 1000, NOW) == 1000
        assert normalize_message_timestamp(state, 1000, NOW) == 1001
        assert normalize_message_timestamp(state, 1000, NOW) == 1002
        assert normalize_message_timestamp(state, 5000, NOW) == 5000

    def test_timestamp_synthesized(self) -> None:
        """Missing timestamps continue one millisecond after the last one."""
        state = DetailState()
        assert normalize_message_timestamp(state, None, NOW) == NOW
        assert normalize_message_timestamp(state, None, NOW) == NOW + 1
        state = DetailState(default_timestamp=1000)
        assert normalize_message_timestamp(state, None, NOW) == 1000

    def test_find_message_id(self) -> None:
        """Only long hex hashes identify user turns."""
        assert find_message_id([["text"], 2, "c_abc", "rc_x", "r_1234567890abcdef", "a1b2c3d4e5f6"]) == (
            "a1b2c3d4e5f6"
        )
        assert find_message_id([["text"], 2, "hash1"]) is None


class TestDetailParsing:
    """Tests for single-payload detail parsing."""

    def test_simple_exchange(self) -> None:
        """A user and assistant turn are recovered from positional arrays."""
        payload = [
            [
                ["c_conv1", "r_resp1"],
                None,
                [["Hello, Gemini!"], 2, None, 0, "hash1", 0],
                [["rc_reply1", ["Hello! How can I help?"], None, None, None, None, None]],
            ],
            [1700000100, 0],
        ]
        result = parse_detail_payload(payload, NOW)

        assert result is not None
        messages = result.messages
        assert [m.role for m in messages] == ["user", "assistant"]
        assert [m.content for m in messages] == ["Hello, Gemini!", "Hello! How can I help?"]
        assert [m.created_at for m in messages] == [1700000100000, 1700000100001]
        assert [m.id for m in messages] == [
            f"gemini_conv1_user_{content_hash('Hello, Gemini!')}",
            "gemini_conv1_rc_reply1",
        ]

        conversation = result.conversation
        assert conversation.id == "gemini_conv1"
        assert conversation.url == "https://gemini.google.com/app/conv1"
        assert conversation.title == "Hello, Gemini!"
        assert conversation.preview == "Hello, Gemini!"
        assert conversation.detail_status == "full"
        assert conversation.detail_synced_at == NOW

    def test_reverse_chronological_batches(self) -> None:
        """Newest-first batches are sorted oldest-first and titled by the earliest turn."""
        payload = [
            turn_batch("c_conv1", "Later question", "rc_reply2", "Later answer", 1700000200),
            turn_batch("c_conv1", "First user message as title", "rc_reply1", "First answer", 1700000100),
        ]
        result = parse_detail_payload(payload, NOW)

        assert result is not None
        assert [m.content for m in result.messages] == [
            "First user message as title",
            "First answer",
            "Later question",
            "Later answer",
        ]
        assert [m.role for m in result.messages] == ["user", "assistant", "user", "assistant"]
        assert result.conversation.title == "First user message as title"
        assert result.conversation.created_at == 1700000100000
        assert result.conversation.updated_at == 1700000200001
        assert len({m.id for m in result.messages}) == 4

    def test_object_format(self) -> None:
        """Object nodes with an author field are recognized."""
        payload = {
            "conversationId": "c_obj1",
            "messages": [
                {"id": "msg1", "author": "user", "text": "User question", "createdAt": 1700000100000},
                {"id": "msg2", "author": "model", "text": "Assistant answer", "createdAt": 1700000200000},
                {"id": "msg3", "author": "narrator", "text": "Dropped", "createdAt": 1700000300000},
            ],
        }
        result = parse_detail_payload(payload, NOW)

        assert result is not None
        assert [m.role for m in result.messages] == ["user", "assistant"]
        assert [m.id for m in result.messages] == ["gemini_obj1_msg1", "gemini_obj1_msg2"]

    def test_object_conversation_id_and_title(self) -> None:
        """conversation_id is read from objects and the user turn names the conversation."""
        payload = {
            "conversation_id": "c_fromobj",
            "title": "Object Title",
            "messages": [{"id": "msg1", "author": "user", "text": "Hello", "createdAt": 1700000100000}],
        }
        result = parse_detail_payload(payload, NOW)
        assert result is not None
        assert result.conversation.original_id == "fromobj"
        assert result.conversation.title == "Hello"

    def test_state_title_without_user_turn(self) -> None:
        """Without a user turn the object title is used."""
        payload = {
            "conversation_id": "c_t1",
            "title": "Object Title",
            "messages": [{"id": "m", "author": "1", "text": "Reply", "createdAt": 1700000100000}],
        }
        result = parse_detail_payload(payload, NOW)
        assert result is not None
        assert result.conversation.title == "Object Title"

    def test_reused_id_with_other_content(self) -> None:
        """A reused native id with new content gets a suffixed id."""
        payload = {
            "conversationId": "c_dup",
            "messages": [
                {"id": "m", "author": "user", "text": "first", "createdAt": 1700000100000},
                {"id": "m", "author": "user", "text": "second", "createdAt": 1700000200000},
            ],
        }
        result = parse_detail_payload(payload, NOW)
        assert result is not None
        assert [m.id for m in result.messages] == ["gemini_dup_m", "gemini_dup_m_1"]

    def test_embedded_json_string(self) -> None:
        """Payloads hidden inside JSON strings are visited."""
        inner = turn_batch("c_emb", "Question", "rc_r1", "Answer", 1700000100)
        result = parse_detail_payload([None, json.dumps(inner)], NOW)
        assert result is not None
        assert len(result.messages) == 2

    def test_no_conversation_id(self) -> None:
        """Turns without a conversation id are unusable."""
        payload = [
            [["Question"], 2, None, 0],
            [[["rc_reply1", ["Answer"], None, None, None, None, None]]],
        ]
        assert parse_detail_payload(payload, NOW) is None

    def test_no_messages(self) -> None:
        """A conversation id alone is not a conversation."""
        assert parse_detail_payload({"conversationId": "c_abc123"}, NOW) is None
        assert parse_detail_payload(None, NOW) is None


class TestAdapter:
    """Tests for the adapter surface."""

    def test_should_capture(self, adapter: GeminiAdapter) -> None:
        """Only Gemini batch and conversation endpoints are captured."""
        assert adapter.should_capture(BATCH_URL)
        assert adapter.should_capture("https://gemini.google.com/api/conversations")
        assert not adapter.should_capture("https://gemini.google.com/app/abc")
        assert not adapter.should_capture("https://example.com/_/BardChatUi/data/batchexecute")

    def test_endpoint_type_is_unknown(self, adapter: GeminiAdapter) -> None:
        """The batch URL does not say what it carries."""
        assert adapter.get_endpoint_type(BATCH_URL) == "unknown"

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            (f"{BATCH_URL}&source-path=%2Fapp%2Fabc123def&bl=boq", "abc123def"),
            ("https://gemini.google.com/app/abc123", "abc123"),
            (f"{BATCH_URL}&c=xyz", "xyz"),
            (f"{BATCH_URL}&id=qrs", "qrs"),
            (BATCH_URL, None),
        ],
    )
    def test_extract_conversation_id(self, adapter: GeminiAdapter, url: str, expected: str | None) -> None:
        """Ids come from source-path, the path, or query parameters."""
        assert adapter.extract_conversation_id(url) == expected

    def test_stream_not_supported(self, adapter: GeminiAdapter) -> None:
        """Gemini has no stream parser."""
        assert adapter.parse_stream_response("data: {}\n\n", BATCH_URL, NOW) is None

    def test_multi_payload_merge(self, adapter: GeminiAdapter) -> None:
        """Several RPC payloads for one conversation are merged."""
        older = turn_batch("c_conv1", "Hello, Gemini!", "rc_reply1", "Hi!", 1700000100,
                           user_hash="a1b2c3d4e5f6")
        newer = turn_batch("c_conv1", "Second question", "rc_reply2", "Second answer", 1700000200,
                           user_hash="f6e5d4c3b2a1")
        result = adapter.parse_conversation_detail(batch_body(newer, older), NOW)

        assert result is not None
        assert [m.content for m in result.messages] == [
            "Hello, Gemini!",
            "Hi!",
            "Second question",
            "Second answer",
        ]
        conversation = result.conversation
        assert conversation.id == "gemini_conv1"
        assert conversation.message_count == 4
        assert conversation.created_at == 1700000100000
        assert conversation.updated_at == 1700000200001
        assert all(m.conversation_id == "gemini_conv1" for m in result.messages)

    def test_overlapping_payloads_keep_longer_content(self, adapter: GeminiAdapter) -> None:
        """The same turn seen twice keeps the longer text."""
        partial = turn_batch("c_conv1", "Question", "rc_reply1", "Short", 1700000100)
        complete = turn_batch("c_conv1", "Question", "rc_reply1", "Short answer, completed", 1700000100)
        result = adapter.parse_conversation_detail(batch_body(partial, complete), NOW)

        assert result is not None
        assert [m.content for m in result.messages] == ["Question", "Short answer, completed"]

    def test_payloads_without_native_ids_keep_every_turn(self, adapter: GeminiAdapter) -> None:
        """Distinct user turns without a hash survive the cross-payload merge."""
        first = turn_batch("c_conv1", "Hello there", "rc_reply1", "Hi", 1700000100)
        second = turn_batch("c_conv1", "Second, longer question", "rc_reply2", "Answer two", 1700000200)
        result = adapter.parse_conversation_detail(batch_body(first, second), NOW)

        assert result is not None
        assert [m.role for m in result.messages] == ["user", "assistant", "user", "assistant"]
        assert [m.content for m in result.messages] == [
            "Hello there",
            "Hi",
            "Second, longer question",
            "Answer two",
        ]

    def test_payloads_for_other_conversations_not_merged(self, adapter: GeminiAdapter) -> None:
        """Only the conversation with the most turns is returned."""
        first = turn_batch("c_aaa", "Question A", "rc_replya", "Answer A", 1700000100)
        second = [
            turn_batch("c_bbb", "Question B", "rc_replyb", "Answer B", 1700000200),
            turn_batch("c_bbb", "Follow-up B", "rc_replyb2", "More B", 1700000300),
        ]
        result = adapter.parse_conversation_detail(batch_body(first, second), NOW)

        assert result is not None
        conversation = result.conversation
        assert conversation.id == "gemini_bbb"
        assert conversation.message_count == 4
        assert all(m.conversation_id == conversation.id for m in result.messages)
        assert "Question A" not in [m.content for m in result.messages]

    def test_repeated_text_within_payload(self) -> None:
        """The same user text twice in one payload stays two messages."""
        payload = [
            turn_batch("c_conv1", "yes", "rc_reply1", "First reply", 1700000100),
            turn_batch("c_conv1", "yes", "rc_reply2", "Second reply", 1700000200),
        ]
        result = parse_detail_payload(payload, NOW)

        assert result is not None
        assert [m.content for m in result.messages].count("yes") == 2
        assert len({m.id for m in result.messages}) == 4

    def test_detail_failure(self, adapter: GeminiAdapter) -> None:
        """Bodies without conversation turns yield None."""
        assert adapter.parse_conversation_detail(batch_body([1, 2, 3]), NOW) is None
        assert adapter.parse_conversation_detail("", NOW) is None
