"""Construction and merging of canonical conversation records."""

import hashlib
import json
from collections.abc import Iterable
from dataclasses import replace

from chat_central.models import (
    PREVIEW_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Conversation,
    Message,
    ParseResult,
    conversation_key,
)


def create_conversation(
    *,
    platform: str,
    original_id: str,
    title: str,
    created_at: int,
    updated_at: int,
    now: int,
    message_count: int = 0,
    preview: str = "",
    summary: str | None = None,
    detail_status: str = "none",
    url: str | None = None,
) -> Conversation:
    """Create a Conversation with the defaults shared by every adapter."""
    return Conversation(
        platform=platform,
        original_id=original_id,
        title=title,
        created_at=created_at,
        updated_at=updated_at,
        synced_at=now,
        message_count=message_count,
        preview=preview,
        summary=summary,
        tags=[],
        detail_status=detail_status,
        detail_synced_at=None if detail_status == "none" else now,
        is_favorite=False,
        favorite_at=None,
        url=url,
    )


def content_hash(content: str) -> str:
    """Compute a short SHA256 digest of message content.

    Args:
        content: The message content to hash

    Returns:
        First 16 characters of the hex-encoded SHA256 hash
    """
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def unique_message_id(existing: dict[str, Message], base_id: str, content: str) -> str:
    """Pick an id that does not overwrite a different message.

    The base id is kept when it is free or already holds the same content.
    Otherwise a ``_<n>`` suffix is added.
    """
    current = existing.get(base_id)
    if current is None or current.content == content:
        return base_id
    suffix = 1
    candidate = f"{base_id}_{suffix}"
    while candidate in existing:
        suffix += 1
        candidate = f"{base_id}_{suffix}"
    return candidate


def order_messages(messages: Iterable[Message]) -> list[Message]:
    """Sort messages by created_at and make the timestamps strictly ascending.

    Ties keep their input order and are pushed forward one millisecond at a
    time.
    """
    ordered = []
    last: int | None = None
    for message in sorted(messages, key=lambda m: m.created_at):
        if last is not None and message.created_at <= last:
            message = replace(message, created_at=last + 1)
        ordered.append(message)
        last = message.created_at
    return ordered


def _longer_text(first: str, second: str) -> str:
    return max(first, second, key=lambda text: (len(text), text))


def merge_messages(current: Message, incoming: Message) -> Message:
    """Merge two captures of the same message.

    Keeps the longer content and the earlier timestamp.
    """
    return replace(
        current,
        content=_longer_text(current.content, incoming.content),
        created_at=min(current.created_at, incoming.created_at),
    )


def merge_message_lists(*message_lists: Iterable[Message]) -> list[Message]:
    """Fold several message lists into one, merging entries that share an id."""
    merged: dict[str, Message] = {}
    for messages in message_lists:
        for message in messages:
            existing = merged.get(message.id)
            merged[message.id] = message if existing is None else merge_messages(existing, message)
    return list(merged.values())


def _recency_key(conversation: Conversation) -> tuple[int, str]:
    return conversation.updated_at, json.dumps(conversation.to_doc(), sort_keys=True)


def merge_conversations(current: Conversation, incoming: Conversation) -> Conversation:
    """Merge two partial views of the same conversation.

    Takes the longer title, the earliest created_at and the largest
    updated_at and message_count. Remaining fields come from the more
    recently updated side. Equal updated_at values are broken by the
    serialized record so the result does not depend on argument order.
    """
    base = max(current, incoming, key=_recency_key)
    return replace(
        base,
        title=_longer_text(current.title, incoming.title),
        created_at=min(current.created_at, incoming.created_at),
        updated_at=max(current.updated_at, incoming.updated_at),
        message_count=max(current.message_count, incoming.message_count),
    )


def first_user_message(messages: Iterable[Message]) -> Message | None:
    """Return the first message with the user role, if any."""
    return next((m for m in messages if m.role == "user"), None)


def assemble_result(
    *,
    platform: str,
    original_id: str,
    messages: Iterable[Message],
    now: int,
    detail_status: str,
    url: str,
    title: str = "",
    default_title: str = "",
    created_at: int | None = None,
    summary: str | None = None,
) -> ParseResult | None:
    """Build the conversation for a set of recovered messages.

    Orders the messages, stamps them with the canonical conversation id and
    derives title, preview, message count and timestamps from them.

    Args:
        platform: Platform name
        original_id: Platform-native conversation id
        messages: Recovered messages, in any order
        now: Parse time in epoch milliseconds
        detail_status: "partial" or "full"
        url: Deep link for the conversation
        title: Platform-supplied title, if any
        default_title: Label used when neither a title nor a user message exists
        created_at: Platform-supplied creation time, if any
        summary: Normalized platform summary, if any

    Returns:
        ParseResult, or None when there are no messages
    """
    ordered = order_messages(messages)
    if not ordered:
        return None

    key = conversation_key(platform, original_id)
    ordered = [replace(message, conversation_id=key) for message in ordered]

    first_user = first_user_message(ordered)
    if not title:
        title = first_user.content[:TITLE_MAX_LENGTH] if first_user else default_title

    first_ts = ordered[0].created_at
    conversation = create_conversation(
        platform=platform,
        original_id=original_id,
        title=title,
        created_at=first_ts if created_at is None else min(created_at, first_ts),
        updated_at=ordered[-1].created_at,
        now=now,
        message_count=len(ordered),
        preview=first_user.content[:PREVIEW_MAX_LENGTH] if first_user else "",
        summary=summary,
        detail_status=detail_status,
        url=url,
    )
    return ParseResult(conversation=conversation, messages=ordered)
