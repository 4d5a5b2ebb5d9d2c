"""Conversation-detail extraction for Gemini payloads.

Gemini detail payloads are positional arrays with no field names. Turns
are recognized by shape:

    [[text, ...], <int>, ...]              user turn
    [<response id>, [text, ...], ...]      assistant turn
    [<turn batch>, [seconds, nanos]]       batch carrying a timestamp

Batches usually arrive newest-first, so each turn is stamped with the
timestamp of the batch it is nested in and messages are sorted afterwards.
"""

from dataclasses import dataclass, field

from chat_central.adapters.gemini.constants import (
    CONVERSATION_ID_RE,
    DEFAULT_TITLE,
    GEMINI_APP_URL,
    MESSAGE_HASH_RE,
    RESPONSE_ID_RE,
)
from chat_central.adapters.gemini.ids import (
    is_conversation_id,
    is_response_id,
    is_string_array,
    normalize_conversation_id,
)
from chat_central.common import (
    MAX_WALK_DEPTH,
    assemble_result,
    content_hash,
    extract_message_content,
    find_max_timestamp_in_array,
    is_number,
    looks_like_json,
    merge_messages,
    parse_json_safe,
    read_timestamp_from_object,
    to_epoch_millis,
    unique_message_id,
)
from chat_central.models import TITLE_MAX_LENGTH, Message, ParseResult

OBJECT_USER_AUTHORS = frozenset({"user", "human", "0"})
OBJECT_ASSISTANT_AUTHORS = frozenset({"assistant", "model", "ai", "1"})


@dataclass
class DetailState:
    """Traversal state for one detail payload."""

    original_id: str = ""
    title: str = ""
    default_timestamp: int | None = None
    last_base_timestamp: int | None = None
    last_produced_timestamp: int | None = None
    tie_breaker: int = 0
    messages: dict[str, Message] = field(default_factory=dict)
    earliest_user: tuple[int, str] | None = None  # (timestamp, content)


def normalize_message_timestamp(state: DetailState, candidate: int | None, now: int) -> int:
    """Produce a turn timestamp that keeps same-batch turns distinct.

    A turn without a timestamp gets the last produced one plus 1 ms. A
    timestamp seen again on consecutive turns gets a growing tie-breaker.
    """
    if candidate is None:
        if state.last_produced_timestamp is not None:
            adjusted = state.last_produced_timestamp + 1
        else:
            adjusted = state.default_timestamp if state.default_timestamp is not None else now
        state.last_produced_timestamp = adjusted
        state.last_base_timestamp = None
        state.tie_breaker = 0
        return adjusted

    if state.last_base_timestamp == candidate:
        state.tie_breaker += 1
    else:
        state.last_base_timestamp = candidate
        state.tie_breaker = 0

    adjusted = candidate + state.tie_breaker
    state.last_produced_timestamp = adjusted
    return adjusted


def upsert_message(state: DetailState, message: Message) -> None:
    existing = state.messages.get(message.id)
    state.messages[message.id] = message if existing is None else merge_messages(existing, message)


def _note_user_message(state: DetailState, content: str, timestamp: int) -> None:
    if state.earliest_user is None or timestamp < state.earliest_user[0]:
        state.earliest_user = (timestamp, content)


def find_message_id(values: list) -> str | None:
    """Find the hex hash that identifies a user turn, skipping conversation and response ids."""
    for item in values:
        if not isinstance(item, str):
            continue
        if CONVERSATION_ID_RE.match(item) or RESPONSE_ID_RE.match(item):
            continue
        if item.startswith("r_"):
            continue
        if MESSAGE_HASH_RE.match(item):
            return item
    return None


def synthesized_message_id(state: DetailState, role: str, content: str) -> str:
    """Content-derived id for a turn that carries no native id.

    Repeats of the same text within one payload get an occurrence suffix, so
    a turn seen again in another payload maps to the same id while distinct
    turns never share one.
    """
    base = f"gemini_{role}_{content_hash(content)}"
    candidate = base
    occurrence = 1
    while candidate in state.messages:
        occurrence += 1
        candidate = f"{base}_{occurrence}"
    return candidate


def _object_role(obj: dict) -> str | None:
    author = obj.get("author") or obj.get("role")
    if isinstance(author, (int, str)) and not isinstance(author, bool):
        label = str(author).lower()
        if label in OBJECT_USER_AUTHORS:
            return "user"
        if label in OBJECT_ASSISTANT_AUTHORS:
            return "assistant"
    return None


def _visit_array(state: DetailState, value: list, context_ts: int | None, now: int, depth: int) -> None:
    if len(value) == 2 and isinstance(value[0], list) and isinstance(value[1], list):
        wrapper_ts = to_epoch_millis(value[1])
        if wrapper_ts:
            if not state.default_timestamp:
                state.default_timestamp = wrapper_ts
            visit(state, value[0], wrapper_ts, now, depth + 1)
            return

    local_ts = find_max_timestamp_in_array(value) or context_ts
    if local_ts and not state.default_timestamp:
        state.default_timestamp = local_ts

    if not state.original_id:
        found = next((item for item in value if is_conversation_id(item)), None)
        if found:
            state.original_id = normalize_conversation_id(found)

    if len(value) >= 2 and is_string_array(value[0]) and is_number(value[1]):
        content = "\n".join(value[0]).strip()
        if content:
            raw_id = find_message_id(value)
            if raw_id:
                message_id = unique_message_id(state.messages, f"gemini_{raw_id}", content)
            else:
                message_id = synthesized_message_id(state, "user", content)
            created_at = normalize_message_timestamp(state, local_ts, now)
            upsert_message(state, Message(message_id, "", "user", content, created_at))
            _note_user_message(state, content, local_ts or created_at)
        return

    if len(value) >= 2 and is_response_id(value[0]) and is_string_array(value[1]):
        content = "\n".join(value[1]).strip()
        if content:
            created_at = normalize_message_timestamp(state, local_ts, now)
            message_id = unique_message_id(state.messages, f"gemini_{value[0]}", content)
            upsert_message(state, Message(message_id, "", "assistant", content, created_at))
        return

    for item in value:
        visit(state, item, local_ts, now, depth + 1)


def _visit_object(state: DetailState, obj: dict, context_ts: int | None, now: int, depth: int) -> None:
    conv_id = (
        obj.get("conversationId")
        or obj.get("conversation_id")
        or obj.get("cid")
        or (obj["id"] if is_conversation_id(obj.get("id")) else None)
    )
    if isinstance(conv_id, str) and conv_id and not state.original_id:
        state.original_id = normalize_conversation_id(conv_id)

    title = obj.get("title") or obj.get("name")
    if not state.title and isinstance(title, str):
        state.title = title

    obj_ts = read_timestamp_from_object(obj) or context_ts
    if obj_ts and not state.default_timestamp:
        state.default_timestamp = obj_ts

    role = _object_role(obj)
    content = extract_message_content(obj).strip()
    if role and content:
        created_at = normalize_message_timestamp(state, obj_ts, now)
        raw_id = obj.get("id") or obj.get("messageId")
        if isinstance(raw_id, str) and raw_id:
            message_id = unique_message_id(state.messages, f"gemini_{raw_id}", content)
        else:
            message_id = synthesized_message_id(state, role, content)
        upsert_message(state, Message(message_id, "", role, content, created_at))
        if role == "user":
            _note_user_message(state, content, obj_ts or created_at)

    for item in obj.values():
        visit(state, item, obj_ts, now, depth + 1)


def visit(state: DetailState, value: object, context_ts: int | None, now: int, depth: int = 0) -> None:
    """Depth-first visit threading the timestamp of the enclosing batch."""
    if not value or depth > MAX_WALK_DEPTH:
        return

    if isinstance(value, list):
        _visit_array(state, value, context_ts, now, depth)
    elif isinstance(value, dict):
        _visit_object(state, value, context_ts, now, depth)
    elif isinstance(value, str):
        if not state.original_id and is_conversation_id(value):
            state.original_id = normalize_conversation_id(value)
        if looks_like_json(value):
            parsed = parse_json_safe(value)
            if parsed:
                visit(state, parsed, context_ts, now, depth + 1)


def _scope_message_id(message: Message, original_id: str) -> str:
    prefix = f"gemini_{original_id}_"
    if message.id.startswith(prefix):
        return message.id
    return prefix + message.id.removeprefix("gemini_")


def parse_detail_payload(payload: object, now: int) -> ParseResult | None:
    """Parse one decoded Gemini payload into a conversation.

    Args:
        payload: One decoded RPC payload
        now: Parse time in epoch milliseconds

    Returns:
        ParseResult, or None when no conversation id or no message was found
    """
    state = DetailState()
    visit(state, payload, None, now)

    if not state.original_id or not state.messages:
        return None

    messages = [
        Message(
            id=_scope_message_id(message, state.original_id),
            conversation_id="",
            role=message.role,
            content=message.content,
            created_at=message.created_at,
        )
        for message in state.messages.values()
    ]
    title = state.earliest_user[1][:TITLE_MAX_LENGTH] if state.earliest_user else ""

    return assemble_result(
        platform="gemini",
        original_id=state.original_id,
        messages=messages,
        now=now,
        detail_status="full",
        url=f"{GEMINI_APP_URL}{state.original_id}",
        title=title,
        default_title=state.title or DEFAULT_TITLE,
        created_at=state.default_timestamp,
    )
