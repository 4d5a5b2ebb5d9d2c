"""Canonicalization primitives shared by the platform adapters."""

from .content import (
    classify_role,
    extract_message_content,
    extract_role,
    join_fragments,
    normalize_summary,
)
from .payloads import (
    extract_sse_payloads,
    normalize_list_payload,
    parse_json_candidates,
    parse_json_if_string,
    parse_json_safe,
    parse_sse_data,
    strip_xssi_prefix,
)
from .records import (
    assemble_result,
    content_hash,
    create_conversation,
    first_user_message,
    merge_conversations,
    merge_message_lists,
    merge_messages,
    order_messages,
    unique_message_id,
)
from .timestamps import (
    find_max_timestamp_in_array,
    is_number,
    now_millis,
    read_timestamp_from_object,
    to_epoch_millis,
    to_epoch_millis_or,
)
from .walker import MAX_WALK_DEPTH, WalkHandlers, looks_like_json, walk

__all__ = [
    "MAX_WALK_DEPTH",
    "WalkHandlers",
    "assemble_result",
    "content_hash",
    "classify_role",
    "create_conversation",
    "extract_message_content",
    "extract_role",
    "extract_sse_payloads",
    "find_max_timestamp_in_array",
    "first_user_message",
    "is_number",
    "join_fragments",
    "looks_like_json",
    "merge_conversations",
    "merge_message_lists",
    "merge_messages",
    "normalize_list_payload",
    "normalize_summary",
    "now_millis",
    "order_messages",
    "parse_json_candidates",
    "parse_json_if_string",
    "parse_json_safe",
    "parse_sse_data",
    "read_timestamp_from_object",
    "strip_xssi_prefix",
    "to_epoch_millis",
    "to_epoch_millis_or",
    "unique_message_id",
    "walk",
]
