"""Adapter for claude.ai web API responses.

Endpoints:
    GET  /api/organizations/{org}/chat_conversations                  (list)
    GET  /api/organizations/{org}/chat_conversations/{uuid}           (detail)
    GET  /api/organizations/{org}/chat_conversations/{uuid}/messages  (detail)
    POST /api/organizations/{org}/chat_conversations/{uuid}/completion (SSE stream)

List items look like ``{uuid, name, summary, created_at, updated_at}``.
Detail payloads are either the conversation object with ``chat_messages``
or a ``{conversation, messages}`` wrapper. Messages carry a ``sender``
("human" / "assistant") and content as a string, ``{text}``, an array of
text blocks, or a ``blocks`` array.
"""

import json
import re

from chat_central.adapters.base import PlatformAdapter
from chat_central.common import (
    assemble_result,
    extract_role,
    extract_sse_payloads,
    join_fragments,
    normalize_list_payload,
    normalize_summary,
    parse_json_if_string,
    to_epoch_millis,
    to_epoch_millis_or,
    unique_message_id,
)
from chat_central.common.records import create_conversation
from chat_central.logging import get_logger
from chat_central.models import PREVIEW_MAX_LENGTH, Message, ParseResult

logger = get_logger("adapters.claude")

CLAUDE_APP_URL = "https://claude.ai/chat/"

LIST_RE = re.compile(r"/api/organizations/[^/]+/chat_conversations/?(\?.*)?$")
DETAIL_RE = re.compile(r"/api/organizations/[^/]+/chat_conversations/([a-f0-9-]+)/?(?:\?.*)?$")
DETAIL_MESSAGES_RE = re.compile(
    r"/api/organizations/[^/]+/chat_conversations/([a-f0-9-]+)/messages(?:\?.*)?$"
)
STREAM_RE = re.compile(
    r"/api/organizations/[^/]+/chat_conversations/([a-f0-9-]+)/completion(?:\?.*)?$"
)

LIST_FIELDS = ("chat_conversations", "conversations", "items", "results")
MESSAGE_LIST_FIELDS = ("chat_messages", "messages", "items", "message_history")
MESSAGE_ENVELOPE_FIELDS = ("items", "messages", "data", "results")


def _first_present(obj: dict, *names: str) -> object:
    for name in names:
        value = obj.get(name)
        if value:
            return value
    return None


def _first_timestamp(obj: dict, *names: str) -> int | None:
    for name in names:
        ts = to_epoch_millis(obj.get(name))
        if ts is not None:
            return ts
    return None


def _non_blank(text: object) -> str:
    return text if isinstance(text, str) and text.strip() else ""


def extract_claude_message_content(message: dict) -> str:
    """Pick the first non-empty content representation of a message.

    Priority: direct ``text``/``content`` string, ``content.text``, an array of
    text blocks, then the ``blocks`` array.
    """
    content = message.get("content")
    direct = _non_blank(message.get("text")) or _non_blank(content)
    if direct:
        return direct

    if isinstance(content, dict) and _non_blank(content.get("text")):
        return content["text"]

    if isinstance(content, list):
        joined = join_fragments([
            part if isinstance(part, str) else part.get("text") if isinstance(part, dict) else None
            for part in content
        ])
        if joined.strip():
            return joined

    blocks = message.get("blocks")
    if isinstance(blocks, list):
        joined = join_fragments([
            block.get("text")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ])
        if joined.strip():
            return joined

    return ""


def _stream_chunk(event: dict) -> tuple[str, bool]:
    """Return the text carried by one stream event and whether it is incremental."""
    if isinstance(event.get("completion"), str):
        return event["completion"], True
    delta = event.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"], True

    message = event.get("message")
    if not isinstance(message, dict):
        message = event
    if isinstance(message.get("text"), str):
        return message["text"], False
    content = message.get("content")
    if isinstance(content, str):
        return content, False
    if isinstance(content, list):
        return join_fragments([
            part if isinstance(part, str)
            else part.get("text") if isinstance(part, dict) and part.get("type") == "text"
            else None
            for part in content
        ]), False
    return "", False


def _normalize_message_list(payload: object) -> list | None:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    for name in MESSAGE_ENVELOPE_FIELDS:
        if isinstance(payload.get(name), list):
            return payload[name]

    # Messages keyed by id
    values = list(payload.values())
    if values and all(isinstance(value, dict) for value in values):
        return values
    return None


class ClaudeAdapter(PlatformAdapter):
    """Adapter for the claude.ai conversation API."""

    platform = "claude"

    def should_capture(self, url: str) -> bool:
        return "/api/organizations/" in url and "/chat_conversations" in url

    def get_endpoint_type(self, url: str) -> str:
        if STREAM_RE.search(url):
            return "stream"
        if DETAIL_RE.search(url) or DETAIL_MESSAGES_RE.search(url):
            return "detail"
        if LIST_RE.search(url):
            return "list"
        return "unknown"

    def extract_conversation_id(self, url: str) -> str | None:
        for pattern in (DETAIL_RE, DETAIL_MESSAGES_RE, STREAM_RE):
            match = pattern.search(url)
            if match:
                return match.group(1)
        return None

    def build_conversation_url(self, original_id: str) -> str:
        return f"{CLAUDE_APP_URL}{original_id}"

    def _parse_list(self, data: object, now: int) -> list:
        items = normalize_list_payload(parse_json_if_string(data), LIST_FIELDS)
        if items is None:
            logger.warning("Claude: expected an array for the conversation list")
            return []

        conversations = []
        for item in items:
            if not isinstance(item, dict):
                continue
            original_id = _first_present(item, "uuid", "id")
            if not isinstance(original_id, str):
                continue

            created_at = to_epoch_millis_or(item.get("created_at"), now)
            message_count = item.get("message_count")
            preview = item.get("preview")
            conversations.append(
                create_conversation(
                    platform=self.platform,
                    original_id=original_id,
                    title=_non_blank(item.get("name")) or "Untitled",
                    created_at=created_at,
                    updated_at=to_epoch_millis_or(item.get("updated_at"), created_at),
                    now=now,
                    message_count=message_count if isinstance(message_count, int) else 0,
                    preview=preview[:PREVIEW_MAX_LENGTH] if isinstance(preview, str) else "",
                    summary=normalize_summary(item.get("summary")),
                    url=self.build_conversation_url(original_id),
                )
            )
        return conversations

    def _parse_detail(self, data: object, now: int) -> ParseResult | None:
        parsed = parse_json_if_string(data)
        if not isinstance(parsed, (dict, list)):
            logger.warning("Claude: invalid conversation detail payload")
            return None

        if isinstance(parsed, list):
            base: dict = {}
            raw_messages: object = parsed
        else:
            base = parsed.get("conversation") or parsed.get("chat_conversation") or parsed
            if not isinstance(base, dict):
                base = parsed
            raw_messages = _first_present(parsed, *MESSAGE_LIST_FIELDS)
            nested = parsed.get("data")
            if raw_messages is None and isinstance(nested, dict):
                raw_messages = _first_present(nested, "messages", "items")

        message_list = _normalize_message_list(raw_messages)
        if message_list is None:
            logger.warning("Claude: no message array in detail payload")
            return None

        original_id = _first_present(
            base, "uuid", "id", "conversation_id", "conversationId", "chat_conversation_uuid"
        )

        messages: dict[str, Message] = {}
        for raw in message_list:
            if not isinstance(raw, dict):
                continue
            role = extract_role(raw)
            content = extract_claude_message_content(raw)
            if role is None or not content:
                continue

            if not isinstance(original_id, str):
                original_id = _first_present(
                    raw,
                    "conversation_id",
                    "conversationId",
                    "chat_conversation_uuid",
                    "chatConversationUuid",
                )

            created_at = _first_timestamp(raw, "created_at", "createdAt", "timestamp")
            if created_at is None:
                created_at = now
            native_id = _first_present(raw, "uuid", "id", "message_id")
            if not isinstance(native_id, str):
                native_id = f"{created_at}_{len(messages) + 1}"

            message_id = unique_message_id(messages, f"claude_{native_id}", content)
            messages[message_id] = Message(
                id=message_id,
                conversation_id="",
                role=role,
                content=content,
                created_at=created_at,
            )

        if not isinstance(original_id, str) or not messages:
            return None

        return assemble_result(
            platform=self.platform,
            original_id=original_id,
            messages=messages.values(),
            now=now,
            detail_status="full",
            url=self.build_conversation_url(original_id),
            title=_non_blank(base.get("name")) or _non_blank(base.get("title")),
            default_title="Untitled",
            created_at=_first_timestamp(base, "created_at", "createdAt"),
            summary=normalize_summary(base.get("summary")),
        )

    def _parse_stream(self, data: object, url: str, now: int) -> ParseResult | None:
        payloads = extract_sse_payloads(data)
        if payloads is None:
            return None

        conversation_id = self.extract_conversation_id(url) or ""
        content = ""
        message_id = ""
        created_at = now
        title = ""

        for payload in payloads:
            try:
                event = json.loads(payload)
            except ValueError:
                continue
            if not isinstance(event, dict):
                continue

            if isinstance(event.get("conversation_id"), str) and event["conversation_id"]:
                conversation_id = event["conversation_id"]

            message = event.get("message")
            if isinstance(message, dict):
                native_id = _first_present(message, "uuid", "id")
                if isinstance(native_id, str):
                    message_id = native_id
                created_at = to_epoch_millis_or(message.get("created_at"), created_at)
                if _non_blank(message.get("name")):
                    title = message["name"]

            chunk, incremental = _stream_chunk(event)
            if not chunk:
                continue
            if incremental:
                content += chunk
            elif len(chunk) > len(content):
                # Full-replacement frames only win when they grow the text
                content = chunk

        if not conversation_id or not content:
            return None

        message_id = message_id or f"{conversation_id}_{created_at}"
        return assemble_result(
            platform=self.platform,
            original_id=conversation_id,
            messages=[
                Message(
                    id=f"claude_{message_id}",
                    conversation_id="",
                    role="assistant",
                    content=content,
                    created_at=created_at,
                )
            ],
            now=now,
            detail_status="partial",
            url=self.build_conversation_url(conversation_id),
            title=title,
            default_title="Claude chat",
        )
