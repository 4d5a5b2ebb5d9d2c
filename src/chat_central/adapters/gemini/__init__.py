"""Adapter for gemini.google.com batchexecute responses.

The web app talks to ``/_/BardChatUi/data/batchexecute`` for both the
conversation list and conversation history. The URL does not say which one
a response is, so ``get_endpoint_type`` returns "unknown" and callers try
both parsers.
"""

from functools import reduce
from urllib.parse import parse_qs, urlparse

from chat_central.adapters.base import PlatformAdapter
from chat_central.adapters.gemini.constants import (
    APP_PATH_RE,
    BATCH_RE,
    CONVERSATIONS_RE,
    GEMINI_APP_URL,
    GEMINI_HOST,
)
from chat_central.adapters.gemini.detail import parse_detail_payload
from chat_central.adapters.gemini.listing import parse_list_payload
from chat_central.adapters.gemini.payload import get_payload_sources
from chat_central.common import merge_conversations, merge_message_lists, order_messages
from chat_central.logging import get_logger
from chat_central.models import Conversation, ParseResult

logger = get_logger("adapters.gemini")


def _merge_results(current: ParseResult, incoming: ParseResult) -> ParseResult:
    return ParseResult(
        conversation=merge_conversations(current.conversation, incoming.conversation),
        messages=merge_message_lists(current.messages, incoming.messages),
    )


def _group_size(group: list[ParseResult]) -> int:
    return sum(len(result.messages) for result in group)


class GeminiAdapter(PlatformAdapter):
    """Adapter for the Gemini web app."""

    platform = "gemini"

    def should_capture(self, url: str) -> bool:
        return GEMINI_HOST in url and bool(BATCH_RE.search(url) or CONVERSATIONS_RE.search(url))

    def get_endpoint_type(self, url: str) -> str:
        return "unknown"

    def extract_conversation_id(self, url: str) -> str | None:
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        query = parse_qs(parsed.query)

        source_path = query.get("source-path", [""])[0]
        if source_path:
            match = APP_PATH_RE.search(source_path)
            if match:
                return match.group(1)

        match = APP_PATH_RE.search(parsed.path)
        if match:
            return match.group(1)

        for name in ("id", "c"):
            value = query.get(name, [""])[0]
            if value:
                return value
        return None

    def build_conversation_url(self, original_id: str) -> str:
        return f"{GEMINI_APP_URL}{original_id}"

    def _parse_list(self, data: object, now: int) -> list[Conversation]:
        sources = get_payload_sources(data)
        if not sources:
            logger.warning("Gemini: no list data received")
            return []

        found: dict[str, Conversation] = {}
        for payload in sources:
            parse_list_payload(payload, now, found)
        return list(found.values())

    def _parse_detail(self, data: object, now: int) -> ParseResult | None:
        sources = get_payload_sources(data)
        if not sources:
            logger.warning("Gemini: no detail data received")
            return None

        results = [
            result
            for result in (parse_detail_payload(payload, now) for payload in sources)
            if result is not None
        ]
        if not results:
            return None

        # One capture can hold several RPC payloads; only same-conversation ones merge
        groups: dict[str, list[ParseResult]] = {}
        for result in results:
            groups.setdefault(result.conversation.id, []).append(result)
        group = max(groups.values(), key=_group_size)
        if len(groups) > 1:
            logger.info(
                "Gemini: capture spans %d conversations, keeping %s",
                len(groups),
                group[0].conversation.id,
            )
        merged = reduce(_merge_results, group)
        messages = order_messages(merged.messages)
        if not messages:
            return None

        conversation = merged.conversation
        conversation.updated_at = messages[-1].created_at
        conversation.message_count = len(messages)
        return ParseResult(conversation=conversation, messages=messages)
