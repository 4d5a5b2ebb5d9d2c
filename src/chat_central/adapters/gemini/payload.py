"""Unwrapping of batchexecute response bodies."""

from chat_central.adapters.gemini.constants import WRB_MARKER
from chat_central.common import (
    MAX_WALK_DEPTH,
    looks_like_json,
    parse_json_candidates,
    parse_json_safe,
    strip_xssi_prefix,
)


def normalize_payloads(data: object) -> list:
    """Turn a captured body into a list of decoded payload candidates."""
    if isinstance(data, (list, dict)):
        return [data]
    if not isinstance(data, str):
        return []
    text = strip_xssi_prefix(data)
    if not text:
        return []
    return parse_json_candidates(text)


def extract_wrb_payloads(payloads: list) -> list:
    """Collect the JSON payloads embedded in ``["wrb.fr", rpc_id, "<json>", ...]`` envelopes.

    Args:
        payloads: Decoded payload candidates

    Returns:
        The decoded inner payloads, in discovery order
    """
    results = []

    def visit(value: object, depth: int) -> None:
        if not value or depth > MAX_WALK_DEPTH:
            return
        if isinstance(value, list):
            if len(value) >= 3 and value[0] == WRB_MARKER and isinstance(value[2], str):
                parsed = parse_json_safe(value[2])
                if parsed:
                    results.append(parsed)
                return
            for item in value:
                visit(item, depth + 1)
            return
        if isinstance(value, str) and looks_like_json(value):
            parsed = parse_json_safe(value)
            if parsed:
                visit(parsed, depth + 1)

    for payload in payloads:
        visit(payload, 0)
    return results


def get_payload_sources(data: object) -> list:
    """Return the RPC payloads of a capture, or the raw candidates when it has none."""
    payloads = normalize_payloads(data)
    wrb_payloads = extract_wrb_payloads(payloads)
    return wrb_payloads or payloads
