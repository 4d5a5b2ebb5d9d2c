"""Base adapter interface and registry."""

from abc import ABC, abstractmethod
from urllib.parse import urlparse

from chat_central.common.timestamps import now_millis
from chat_central.logging import get_logger
from chat_central.models import Conversation, ParseResult

__all__ = [
    "AdapterRegistry",
    "PlatformAdapter",
    "get_adapter_for_url",
    "get_platform_from_host",
    "is_supported_platform",
]

logger = get_logger("adapters")

# Exception families that malformed payloads can provoke inside a parse hook
CONTAINED_ERRORS = (
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
    IndexError,
    RecursionError,
)

HOST_PLATFORMS = (
    ("claude.ai", "claude"),
    ("openai.com", "chatgpt"),
    ("chatgpt.com", "chatgpt"),
    ("gemini.google.com", "gemini"),
)


class PlatformAdapter(ABC):
    """Base class for platform adapters.

    Subclasses set the `platform` class attribute and implement the
    `_parse_list` / `_parse_detail` hooks (and optionally `_parse_stream`).
    The public parse methods never raise: unusable input yields an empty
    list or None.
    """

    platform: str

    @abstractmethod
    def should_capture(self, url: str) -> bool:
        """Check whether a captured URL belongs to this adapter."""

    @abstractmethod
    def get_endpoint_type(self, url: str) -> str:
        """Classify a URL as "list", "detail", "stream" or "unknown"."""

    @abstractmethod
    def extract_conversation_id(self, url: str) -> str | None:
        """Extract the platform-native conversation id from a URL."""

    @abstractmethod
    def build_conversation_url(self, original_id: str) -> str:
        """Build the deep link to a conversation in the platform UI."""

    @abstractmethod
    def _parse_list(self, data: object, now: int) -> list[Conversation]:
        ...

    @abstractmethod
    def _parse_detail(self, data: object, now: int) -> ParseResult | None:
        ...

    def _parse_stream(self, data: object, url: str, now: int) -> ParseResult | None:
        return None

    def parse_conversation_list(self, data: object, now: int | None = None) -> list[Conversation]:
        """Parse a conversation-list response.

        Args:
            data: Captured response body (text or decoded JSON)
            now: Parse time in epoch milliseconds (defaults to the wall clock)

        Returns:
            Conversations with detail_status "none", or [] when nothing parses
        """
        try:
            return self._parse_list(data, now_millis() if now is None else now)
        except CONTAINED_ERRORS:
            logger.warning("%s: failed to parse conversation list", self.platform, exc_info=True)
            return []

    def parse_conversation_detail(self, data: object, now: int | None = None) -> ParseResult | None:
        """Parse a full conversation-detail response.

        Args:
            data: Captured response body (text or decoded JSON)
            now: Parse time in epoch milliseconds (defaults to the wall clock)

        Returns:
            ParseResult with detail_status "full", or None when no message was recovered
        """
        try:
            return self._parse_detail(data, now_millis() if now is None else now)
        except CONTAINED_ERRORS:
            logger.warning("%s: failed to parse conversation detail", self.platform, exc_info=True)
            return None

    def parse_stream_response(
        self,
        data: object,
        url: str,
        now: int | None = None,
    ) -> ParseResult | None:
        """Parse an in-flight streaming response into a single-exchange conversation.

        Args:
            data: Raw SSE text (or an {"events": [...]} wrapper)
            url: The captured request URL
            now: Parse time in epoch milliseconds (defaults to the wall clock)

        Returns:
            ParseResult with detail_status "partial", or None
        """
        try:
            return self._parse_stream(data, url, now_millis() if now is None else now)
        except CONTAINED_ERRORS:
            logger.warning("%s: failed to parse stream response", self.platform, exc_info=True)
            return None


class AdapterRegistry:
    """Registry of adapters by platform name."""

    _adapters: dict[str, PlatformAdapter] = {}

    @classmethod
    def register(cls, adapter: PlatformAdapter) -> None:
        """Register an adapter."""
        cls._adapters[adapter.platform] = adapter

    @classmethod
    def get(cls, platform: str) -> PlatformAdapter | None:
        """Get adapter by platform name."""
        return cls._adapters.get(platform)

    @classmethod
    def all_platforms(cls) -> list[str]:
        """List all registered platform names."""
        return list(cls._adapters.keys())

    @classmethod
    def all_adapters(cls) -> list[PlatformAdapter]:
        """List all registered adapters in registration order."""
        return list(cls._adapters.values())


def get_adapter_for_url(url: str) -> PlatformAdapter | None:
    """Return the first registered adapter that wants to capture the URL."""
    for adapter in AdapterRegistry.all_adapters():
        if adapter.should_capture(url):
            return adapter
    return None


def get_platform_from_host(hostname: str) -> str | None:
    """Map a hostname to its platform name."""
    for marker, platform in HOST_PLATFORMS:
        if marker in hostname:
            return platform
    return None


def is_supported_platform(url: str) -> bool:
    """Check whether a URL is served by one of the supported platforms."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return False
    return bool(hostname) and get_platform_from_host(hostname) is not None
