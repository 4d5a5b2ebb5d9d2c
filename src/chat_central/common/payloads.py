"""Tolerant decoding of captured response bodies.

Captured bodies arrive as already-decoded objects, JSON text (optionally
behind an anti-hijacking prefix such as ``)]}'``), multi-line batch text,
or Server-Sent-Event streams. Nothing in this module raises on bad input.
"""

import json
import re
from collections.abc import Sequence

XSSI_PREFIXES = (")))}'", "))}'", ")]}'")
SSE_DONE = "[DONE]"

DEFAULT_LIST_FIELDS = ("items", "conversations", "results")

_SSE_BLOCK_SPLIT = re.compile(r"\n\n+")


def strip_xssi_prefix(text: str) -> str:
    """Remove a leading anti-hijacking prefix and surrounding whitespace."""
    trimmed = text.strip()
    for prefix in XSSI_PREFIXES:
        if trimmed.startswith(prefix):
            return trimmed[len(prefix):].lstrip()
    return trimmed


def parse_json_safe(text: str) -> object | None:
    """Parse JSON text, returning None instead of raising on failure."""
    try:
        return json.loads(text)
    except (ValueError, TypeError, RecursionError):
        return None


def parse_json_if_string(data: object) -> object | None:
    """Decode string data (stripping any XSSI prefix); pass other values through."""
    if not isinstance(data, str):
        return data
    text = strip_xssi_prefix(data)
    if not text:
        return None
    return parse_json_safe(text)


def parse_json_candidates(text: str) -> list:
    """Recover every JSON value that can be found in noisy text.

    Tries, in order, a direct parse, each non-empty line on its own, and the
    outermost ``[...]`` region. Callers pick the first structurally valid
    candidate.

    Args:
        text: Raw response text with any XSSI prefix already removed

    Returns:
        List of decoded values (possibly empty)
    """
    direct = parse_json_safe(text)
    if direct:
        return [direct]

    results = []
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        parsed = parse_json_safe(line)
        if parsed:
            results.append(parsed)

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        parsed = parse_json_safe(text[start:end + 1])
        if parsed:
            results.append(parsed)

    return results


def parse_sse_data(raw: str) -> list[str]:
    """Split an SSE stream into the data payload of each event.

    Blocks are separated by blank lines. Only ``data:`` lines are kept and
    multi-line data is rejoined with newlines. Empty blocks and the
    ``[DONE]`` sentinel are dropped.
    """
    payloads = []
    for block in _SSE_BLOCK_SPLIT.split(raw.replace("\r\n", "\n")):
        lines = [
            line[5:].lstrip()
            for line in block.split("\n")
            if line.startswith("data:")
        ]
        data = "\n".join(lines).strip()
        if data and data != SSE_DONE:
            payloads.append(data)
    return payloads


def extract_sse_payloads(data: object) -> list[str] | None:
    """Get SSE event payloads from raw text or an ``{"events": [...]}`` wrapper.

    Pre-structured events are re-serialized and then split like raw text,
    which loses the ``data:`` framing, so such wrappers normally yield None.

    Returns:
        Non-empty list of payload strings, or None
    """
    if isinstance(data, str):
        raw = data
    elif isinstance(data, dict) and isinstance(data.get("events"), list):
        raw = "\n\n".join(json.dumps(event, default=str) for event in data["events"])
    else:
        return None

    payloads = parse_sse_data(raw)
    return payloads or None


def normalize_list_payload(
    payload: object,
    fields: Sequence[str] = DEFAULT_LIST_FIELDS,
) -> list | None:
    """Find the item array inside an unknown list envelope.

    Looks for the first array under each candidate field at the root, then
    at ``data`` itself, then under each candidate field of a nested ``data``
    object.

    Args:
        payload: Decoded response body
        fields: Ordered candidate field names

    Returns:
        The item list, or None if no candidate matched
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    for name in fields:
        candidate = payload.get(name)
        if isinstance(candidate, list):
            return candidate

    nested = payload.get("data")
    if isinstance(nested, list):
        return nested
    if isinstance(nested, dict):
        for name in fields:
            candidate = nested.get(name)
            if isinstance(candidate, list):
                return candidate

    return None
