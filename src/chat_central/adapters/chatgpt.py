"""Adapter for chatgpt.com backend API responses.

Endpoints:
    GET  /backend-api/conversations        (list)
    GET  /backend-api/conversation/{id}    (detail)
    POST /backend-api/conversation         (SSE stream)

Detail payloads store the conversation as a ``mapping`` of tree nodes, each
optionally wrapping a ``message``. Ordering is rebuilt from ``create_time``
rather than from the parent/child edges.
"""

import json
import re

from chat_central.adapters.base import PlatformAdapter
from chat_central.common import (
    assemble_result,
    classify_role,
    extract_sse_payloads,
    join_fragments,
    normalize_list_payload,
    parse_json_if_string,
    to_epoch_millis,
    to_epoch_millis_or,
)
from chat_central.common.records import create_conversation
from chat_central.logging import get_logger
from chat_central.models import PREVIEW_MAX_LENGTH, TITLE_MAX_LENGTH, Message, ParseResult

logger = get_logger("adapters.chatgpt")

CHATGPT_APP_URL = "https://chatgpt.com/c/"

LIST_RE = re.compile(r"/backend-api/conversations(\?.*)?$")
DETAIL_RE = re.compile(r"/backend-api/conversation/([a-f0-9-]+)/?(?:\?.*)?$")
STREAM_RE = re.compile(r"/backend-api/conversation/?(?:\?.*)?$")

LIST_FIELDS = ("items", "conversations")
DEFAULT_TITLE = "New chat"


def extract_chatgpt_content(message: dict) -> str:
    """Read message text from ``content.parts``, ``content.text`` or a content string."""
    content = message.get("content")
    if isinstance(content, dict):
        if isinstance(content.get("parts"), list):
            return join_fragments(content["parts"])
        if isinstance(content.get("text"), str):
            return content["text"]
    if isinstance(content, str):
        return content
    return ""


def _message_role(message: dict) -> str | None:
    author = message.get("author")
    if not isinstance(author, dict):
        return None
    # system and tool nodes are not part of the visible exchange
    return classify_role(author.get("role"))


def _read_message(message: object, now: int) -> Message | None:
    """Turn one wire message into a Message, or None when it is not a visible turn."""
    if not isinstance(message, dict):
        return None
    native_id = message.get("id")
    if not native_id or not isinstance(native_id, str):
        return None
    role = _message_role(message)
    content = extract_chatgpt_content(message)
    if role is None or not content:
        return None
    return Message(
        id=f"chatgpt_{native_id}",
        conversation_id="",
        role=role,
        content=content,
        created_at=to_epoch_millis_or(message.get("create_time"), now),
    )


class ChatGPTAdapter(PlatformAdapter):
    """Adapter for the ChatGPT web backend API."""

    platform = "chatgpt"

    def should_capture(self, url: str) -> bool:
        return "/backend-api/conversation" in url

    def get_endpoint_type(self, url: str) -> str:
        if LIST_RE.search(url):
            return "list"
        if DETAIL_RE.search(url):
            return "detail"
        if STREAM_RE.search(url):
            return "stream"
        return "unknown"

    def extract_conversation_id(self, url: str) -> str | None:
        match = DETAIL_RE.search(url)
        return match.group(1) if match else None

    def build_conversation_url(self, original_id: str) -> str:
        return f"{CHATGPT_APP_URL}{original_id}"

    def _parse_list(self, data: object, now: int) -> list:
        items = normalize_list_payload(parse_json_if_string(data), LIST_FIELDS)
        if items is None:
            logger.warning("ChatGPT: invalid conversation list data")
            return []

        conversations = []
        for item in items:
            if not isinstance(item, dict):
                continue
            original_id = item.get("id")
            if not original_id or not isinstance(original_id, str):
                continue

            title = item.get("title") if isinstance(item.get("title"), str) else ""
            snippet = item.get("snippet") if isinstance(item.get("snippet"), str) else ""
            created_at = to_epoch_millis_or(item.get("create_time"), now)
            conversations.append(
                create_conversation(
                    platform=self.platform,
                    original_id=original_id,
                    title=title or DEFAULT_TITLE,
                    created_at=created_at,
                    updated_at=to_epoch_millis_or(item.get("update_time"), created_at),
                    now=now,
                    preview=(snippet or title)[:PREVIEW_MAX_LENGTH],
                    url=self.build_conversation_url(original_id),
                )
            )
        return conversations

    def _parse_detail(self, data: object, now: int) -> ParseResult | None:
        item = parse_json_if_string(data)
        if not isinstance(item, dict):
            logger.warning("ChatGPT: invalid conversation detail data")
            return None

        if item.get("isStream") and isinstance(item.get("events"), list):
            # Stream-captured detail: the last event holding a mapping is the full state
            item = next(
                (e for e in reversed(item["events"]) if isinstance(e, dict) and e.get("mapping")),
                None,
            )
            if item is None:
                logger.warning("ChatGPT: stream events do not contain a full mapping")
                return None

        original_id = item.get("conversation_id") or item.get("id")
        if not original_id or not isinstance(original_id, str):
            return None

        mapping = item.get("mapping")
        nodes = mapping.values() if isinstance(mapping, dict) else []
        messages = []
        for node in nodes:
            if not isinstance(node, dict):
                continue
            message = _read_message(node.get("message"), now)
            if message is not None:
                messages.append(message)

        title = item.get("title") if isinstance(item.get("title"), str) else ""
        return assemble_result(
            platform=self.platform,
            original_id=original_id,
            messages=messages,
            now=now,
            detail_status="full",
            url=self.build_conversation_url(original_id),
            title=title,
            default_title=DEFAULT_TITLE,
            created_at=to_epoch_millis(item.get("create_time")),
        )

    def _parse_stream(self, data: object, url: str, now: int) -> ParseResult | None:
        payloads = extract_sse_payloads(data)
        if payloads is None:
            return None

        by_id: dict[str, Message] = {}
        conversation_id = self.extract_conversation_id(url) or ""

        for payload in payloads:
            try:
                event = json.loads(payload)
            except ValueError:
                continue
            if not isinstance(event, dict):
                continue

            if isinstance(event.get("conversation_id"), str) and event["conversation_id"]:
                conversation_id = event["conversation_id"]

            raw = event.get("message")
            if isinstance(raw, dict) and isinstance(raw.get("conversation_id"), str):
                conversation_id = raw["conversation_id"] or conversation_id

            message = _read_message(raw, now)
            if message is None:
                continue

            existing = by_id.get(message.id)
            if existing is None:
                by_id[message.id] = message
                continue
            if len(message.content) >= len(existing.content):
                existing.content = message.content
            existing.created_at = min(existing.created_at, message.created_at)

        # The conversation id often trails the first content frame
        if not conversation_id or not by_id:
            return None

        earliest = min(by_id.values(), key=lambda m: m.created_at)
        return assemble_result(
            platform=self.platform,
            original_id=conversation_id,
            messages=by_id.values(),
            now=now,
            detail_status="partial",
            url=self.build_conversation_url(conversation_id),
            default_title=earliest.content[:TITLE_MAX_LENGTH] or DEFAULT_TITLE,
        )
