"""Canonical data models."""

from dataclasses import dataclass, field

PLATFORMS = ("claude", "chatgpt", "gemini")
ROLES = ("user", "assistant")
DETAIL_STATUSES = ("none", "partial", "full")
ENDPOINT_TYPES = ("list", "detail", "stream", "unknown")

TITLE_MAX_LENGTH = 80
PREVIEW_MAX_LENGTH = 200


def conversation_key(platform: str, original_id: str) -> str:
    """Build the canonical conversation id used as the upsert key."""
    return f"{platform}_{original_id}"


@dataclass
class Message:
    """A normalized chat message from any platform."""

    id: str
    conversation_id: str
    role: str  # user, assistant
    content: str
    created_at: int  # epoch milliseconds

    def to_doc(self) -> dict:
        """Convert to the record shape handed to the persistence layer."""
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at,
        }


@dataclass
class Conversation:
    """Normalized conversation metadata for one remote chat thread."""

    platform: str  # claude, chatgpt, gemini
    original_id: str
    title: str
    created_at: int  # epoch milliseconds
    updated_at: int  # epoch milliseconds
    synced_at: int
    message_count: int = 0
    preview: str = ""
    summary: str | None = None
    tags: list[str] = field(default_factory=list)
    detail_status: str = "none"  # none, partial, full
    detail_synced_at: int | None = None
    is_favorite: bool = False
    favorite_at: int | None = None
    url: str | None = None

    @property
    def id(self) -> str:
        """Stable unique ID for this conversation."""
        return conversation_key(self.platform, self.original_id)

    def to_doc(self) -> dict:
        """Convert to the record shape handed to the persistence layer."""
        doc = {
            "id": self.id,
            "platform": self.platform,
            "originalId": self.original_id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messageCount": self.message_count,
            "preview": self.preview,
            "tags": list(self.tags),
            "syncedAt": self.synced_at,
            "detailStatus": self.detail_status,
            "detailSyncedAt": self.detail_synced_at,
            "isFavorite": self.is_favorite,
            "favoriteAt": self.favorite_at,
        }
        if self.summary:
            doc["summary"] = self.summary
        if self.url:
            doc["url"] = self.url
        return doc


@dataclass
class ParseResult:
    """A conversation together with the messages recovered for it."""

    conversation: Conversation
    messages: list[Message]
