"""Routing of captured responses to adapters and into a conversation store."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from chat_central.adapters import PlatformAdapter, get_adapter_for_url
from chat_central.config import Config
from chat_central.logging import get_logger
from chat_central.models import PREVIEW_MAX_LENGTH, Conversation, Message

logger = get_logger("capture")

DETAIL_STATUS_RANK = {"none": 0, "partial": 1, "full": 2}
ID_LIKE_TITLE_RE = re.compile(r"^(?:r|rc|c)_[a-z0-9]+$", re.IGNORECASE)
SHORT_TITLE_LENGTH = 6


@dataclass
class CaptureResult:
    """Outcome of processing one captured response."""

    success: bool
    count: int = 0
    platform: str | None = None
    endpoint_type: str | None = None
    error: str | None = None


class ConversationSink(ABC):
    """Persistence contract for parsed conversations."""

    @abstractmethod
    def upsert_conversations(self, conversations: list[Conversation]) -> None:
        """Merge list-level conversations into the store."""

    @abstractmethod
    def apply_conversation_update(
        self,
        conversation: Conversation,
        messages: list[Message],
        mode: str,
    ) -> None:
        """Store a conversation with its messages.

        Args:
            conversation: Parsed conversation
            messages: Parsed messages, ordered by created_at
            mode: "full" for a detail parse, "partial" for a stream parse
        """


def _squash_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text)


def _keep_existing_title(existing: Conversation, incoming: Conversation) -> bool:
    """Gemini list and stream captures often carry placeholder titles."""
    if existing.platform != "gemini":
        return False
    if not existing.title or not incoming.title or existing.title == incoming.title:
        return False

    title = incoming.title.strip()
    preview = incoming.preview.strip()
    if not title or ID_LIKE_TITLE_RE.match(title):
        return True
    if not preview:
        return False

    title = _squash_whitespace(title)
    preview = _squash_whitespace(preview)
    return (
        preview.startswith(title)
        or title.startswith(preview)
        or len(title) <= SHORT_TITLE_LENGTH
    )


def merge_stored_conversation(existing: Conversation, incoming: Conversation) -> Conversation:
    """Merge a freshly parsed conversation into the stored one.

    The detail status never moves down, except that a newer, less detailed
    capture of a fully synced conversation marks it "partial". Favorites
    are sticky. Timestamps and counts only grow.

    Args:
        existing: The stored record
        incoming: The newly parsed record

    Returns:
        The merged record
    """
    incoming_is_newer = incoming.updated_at > existing.updated_at
    existing_rank = DETAIL_STATUS_RANK.get(existing.detail_status, 0)
    incoming_rank = DETAIL_STATUS_RANK.get(incoming.detail_status, 0)

    if incoming_rank >= existing_rank:
        detail_status = incoming.detail_status
        detail_synced_at = (
            max(existing.detail_synced_at or 0, incoming.detail_synced_at or 0) or None
        )
    else:
        detail_status = existing.detail_status
        detail_synced_at = existing.detail_synced_at
        if incoming_is_newer and existing.detail_status == "full":
            detail_status = "partial"

    title = existing.title or incoming.title
    if incoming.title and (not existing.title or not _keep_existing_title(existing, incoming)):
        title = incoming.title

    if incoming_is_newer and incoming.preview:
        preview = incoming.preview
    else:
        preview = existing.preview or incoming.preview

    is_favorite = existing.is_favorite or incoming.is_favorite
    favorite_at = existing.favorite_at
    if not existing.is_favorite and incoming.is_favorite:
        favorite_at = incoming.favorite_at or incoming.synced_at
    elif not is_favorite:
        favorite_at = None

    return replace(
        incoming,
        title=title,
        preview=preview,
        message_count=max(existing.message_count, incoming.message_count),
        created_at=min(existing.created_at, incoming.created_at),
        updated_at=max(existing.updated_at, incoming.updated_at),
        synced_at=max(existing.synced_at, incoming.synced_at),
        summary=incoming.summary or existing.summary,
        tags=existing.tags or incoming.tags,
        detail_status=detail_status,
        detail_synced_at=detail_synced_at,
        is_favorite=is_favorite,
        favorite_at=favorite_at,
        url=existing.url or incoming.url,
    )


def dedupe_messages_by_content(
    messages: list[Message],
    existing: dict[str, Message],
) -> list[Message]:
    """Rename messages whose id is already stored with different content.

    Gemini reuses message ids across turns, so a colliding id with other
    content gets a ``_dup<n>`` suffix instead of overwriting stored text.
    """
    used = {message.id for message in messages}
    deduped = []
    for message in messages:
        stored = existing.get(message.id)
        if stored is None or stored.content.strip() == message.content.strip():
            deduped.append(message)
            continue

        suffix = 1
        candidate = f"{message.id}_dup{suffix}"
        while candidate in used or candidate in existing:
            suffix += 1
            candidate = f"{message.id}_dup{suffix}"
        used.add(candidate)
        deduped.append(replace(message, id=candidate))
    return deduped


class MemorySink(ConversationSink):
    """In-memory conversation store keyed by canonical ids."""

    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, Message] = {}

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    def get_messages(self, conversation_id: str) -> list[Message]:
        """Return the stored messages of a conversation, oldest first."""
        return sorted(
            (m for m in self.messages.values() if m.conversation_id == conversation_id),
            key=lambda m: (m.created_at, m.id),
        )

    def upsert_conversation(self, conversation: Conversation) -> None:
        existing = self.conversations.get(conversation.id)
        if existing is not None:
            conversation = merge_stored_conversation(existing, conversation)
        self.conversations[conversation.id] = conversation

    def upsert_conversations(self, conversations: list[Conversation]) -> None:
        for conversation in conversations:
            self.upsert_conversation(conversation)

    def apply_conversation_update(
        self,
        conversation: Conversation,
        messages: list[Message],
        mode: str,
    ) -> None:
        self.upsert_conversation(
            replace(
                conversation,
                detail_status="full" if mode == "full" else "partial",
                detail_synced_at=conversation.synced_at,
            )
        )
        if not messages:
            return

        if conversation.platform == "gemini":
            messages = dedupe_messages_by_content(messages, self.messages)

        known_ids = {m.id for m in messages if m.id in self.messages}
        for message in messages:
            self.messages[message.id] = message
        self._refresh_metadata(conversation.id, messages, mode, known_ids)

    def _refresh_metadata(
        self,
        conversation_id: str,
        messages: list[Message],
        mode: str,
        known_ids: set[str],
    ) -> None:
        existing = self.conversations[conversation_id]
        latest = max(m.created_at for m in messages)

        if mode == "full":
            ordered = sorted(messages, key=lambda m: m.created_at)
            source = next((m for m in ordered if m.role == "user"), ordered[0])
            preview = source.content[:PREVIEW_MAX_LENGTH]
            message_count = len(messages)
        else:
            new_messages = [m for m in messages if m.id not in known_ids]
            latest_user = next((m for m in reversed(new_messages) if m.role == "user"), None)
            preview = latest_user.content[:PREVIEW_MAX_LENGTH] if latest_user else existing.preview
            message_count = existing.message_count + len(new_messages)

        self.conversations[conversation_id] = replace(
            existing,
            updated_at=max(existing.updated_at, latest),
            preview=preview,
            message_count=message_count,
        )


def _apply(sink: ConversationSink, conversation: Conversation, messages: list[Message], mode: str) -> None:
    logger.info(
        'Parsed conversation "%s" with %d messages (%s)',
        conversation.title,
        len(messages),
        mode,
    )
    sink.apply_conversation_update(conversation, messages, mode)


def _process_unknown(
    adapter: PlatformAdapter,
    url: str,
    data: object,
    sink: ConversationSink,
    now: int | None,
) -> tuple[bool, int]:
    handled = False
    count = 0

    detail = adapter.parse_conversation_detail(data, now)
    if detail is not None:
        _apply(sink, detail.conversation, detail.messages, "full")
        handled = True
        count = len(detail.messages)

    conversations = adapter.parse_conversation_list(data, now)
    if conversations:
        sink.upsert_conversations(conversations)
        handled = True
        if detail is None:
            count = len(conversations)

    if not handled:
        stream = adapter.parse_stream_response(data, url, now)
        if stream is not None:
            _apply(sink, stream.conversation, stream.messages, "partial")
            return True, len(stream.messages)

    return handled, count


def process_capture(
    url: str,
    data: object,
    sink: ConversationSink,
    now: int | None = None,
    config: Config | None = None,
) -> CaptureResult:
    """Parse one captured response and hand the records to a sink.

    Args:
        url: The captured request URL
        data: The captured response body
        sink: Conversation store receiving the parsed records
        now: Parse time in epoch milliseconds (defaults to the wall clock)
        config: Optional configuration; disabled platforms are skipped

    Returns:
        CaptureResult describing what was stored
    """
    adapter = get_adapter_for_url(url)
    if adapter is None:
        logger.warning("No adapter found for URL: %s", url)
        return CaptureResult(success=False, error="no adapter")

    platform = adapter.platform
    if config is not None and not config.is_enabled(platform):
        logger.info("Skipping capture for disabled platform %s", platform)
        return CaptureResult(success=False, platform=platform, error="platform disabled")

    endpoint_type = adapter.get_endpoint_type(url)
    logger.info("Processing %s %s response", platform, endpoint_type)
    result = CaptureResult(success=False, platform=platform, endpoint_type=endpoint_type)

    if endpoint_type == "list":
        conversations = adapter.parse_conversation_list(data, now)
        if conversations:
            sink.upsert_conversations(conversations)
            logger.info("Parsed %d conversations from %s", len(conversations), platform)
        result.success = True
        result.count = len(conversations)
    elif endpoint_type in ("detail", "stream"):
        if endpoint_type == "detail":
            parsed = adapter.parse_conversation_detail(data, now)
        else:
            parsed = adapter.parse_stream_response(data, url, now)
        if parsed is None:
            logger.info("Failed to parse %s %s response", platform, endpoint_type)
            result.error = f"unparseable {endpoint_type} response"
        else:
            mode = "full" if endpoint_type == "detail" else "partial"
            _apply(sink, parsed.conversation, parsed.messages, mode)
            result.success = True
            result.count = len(parsed.messages)
    else:
        result.success, result.count = _process_unknown(adapter, url, data, sink, now)
        if not result.success:
            result.error = "unrecognized response"

    return result
