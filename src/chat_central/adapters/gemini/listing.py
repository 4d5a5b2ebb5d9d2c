"""Conversation-list extraction for Gemini payloads."""

from chat_central.adapters.gemini.constants import GEMINI_APP_URL
from chat_central.adapters.gemini.ids import (
    is_conversation_id,
    looks_like_id,
    normalize_conversation_id,
)
from chat_central.common import (
    WalkHandlers,
    create_conversation,
    find_max_timestamp_in_array,
    read_timestamp_from_object,
    walk,
)
from chat_central.models import Conversation

OBJECT_ID_KEYS = ("conversationId", "id", "c")
OBJECT_TITLE_KEYS = ("title", "t", "name")


def _first_not_none(obj: dict, keys: tuple) -> object:
    return next((obj[key] for key in keys if obj.get(key) is not None), None)


def build_conversation(raw_id: str, title: str, created_at: int | None, now: int) -> Conversation:
    """Build a list-level Gemini conversation.

    Args:
        raw_id: Conversation id, with or without the ``c_`` prefix
        title: Conversation title
        created_at: Discovered timestamp, or None/0 to use ``now``
        now: Parse time in epoch milliseconds
    """
    original_id = normalize_conversation_id(raw_id)
    timestamp = created_at or now
    return create_conversation(
        platform="gemini",
        original_id=original_id,
        title=title,
        created_at=timestamp,
        updated_at=timestamp,
        now=now,
        url=f"{GEMINI_APP_URL}{original_id}",
    )


def parse_list_item(value: list, now: int) -> Conversation | None:
    """Recognize ``[conversation_id, title, ..., timestamp, ...]`` records."""
    if len(value) < 3 or not is_conversation_id(value[0]):
        return None
    title = value[1]
    if not isinstance(title, str) or not title or looks_like_id(title):
        return None
    created_at = find_max_timestamp_in_array(value)
    if not created_at:
        return None
    return build_conversation(value[0], title, created_at, now)


def parse_list_object(obj: dict, now: int) -> Conversation | None:
    """Recognize object-shaped records keyed by id/title aliases."""
    raw_id = _first_not_none(obj, OBJECT_ID_KEYS)
    title = _first_not_none(obj, OBJECT_TITLE_KEYS)
    if not isinstance(raw_id, str) or not raw_id:
        return None
    if not isinstance(title, str) or not title or looks_like_id(title):
        return None
    return build_conversation(raw_id, title, read_timestamp_from_object(obj), now)


def upsert_latest(found: dict[str, Conversation], conversation: Conversation) -> None:
    """Keep the instance of a conversation with the greater updated_at."""
    existing = found.get(conversation.id)
    if existing is None or existing.updated_at < conversation.updated_at:
        found[conversation.id] = conversation


def parse_list_payload(payload: object, now: int, found: dict[str, Conversation]) -> None:
    """Walk one payload and add every recognized conversation to ``found``."""

    def on_array(value: list) -> bool:
        conversation = parse_list_item(value, now)
        if conversation is None:
            return False
        upsert_latest(found, conversation)
        return True

    def on_object(obj: dict) -> bool:
        conversation = parse_list_object(obj, now)
        if conversation is not None:
            upsert_latest(found, conversation)
        return False

    walk(payload, WalkHandlers(array=on_array, obj=on_object))
