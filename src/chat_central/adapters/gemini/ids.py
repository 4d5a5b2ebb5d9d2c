"""Shape tests for the positional Gemini wire format."""

from chat_central.adapters.gemini.constants import (
    CONVERSATION_ID_RE,
    RESPONSE_ID_RE,
    RESPONSE_ID_SHORT_RE,
)


def normalize_conversation_id(value: str) -> str:
    """Drop the ``c_`` prefix from a conversation id."""
    return value[2:] if value.startswith("c_") else value


def is_conversation_id(value: object) -> bool:
    return isinstance(value, str) and bool(CONVERSATION_ID_RE.match(value))


def is_response_id(value: object) -> bool:
    return isinstance(value, str) and bool(
        RESPONSE_ID_RE.match(value) or RESPONSE_ID_SHORT_RE.match(value)
    )


def is_string_array(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def looks_like_id(value: str) -> bool:
    """Check whether a title candidate is really an id or a URL from a neighbouring slot."""
    return is_conversation_id(value) or is_response_id(value) or value.startswith("http")
