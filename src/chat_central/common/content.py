"""Content and role extraction shared by the platform adapters."""

import re

USER_ROLES = frozenset({"human", "user"})
ASSISTANT_ROLES = frozenset({"assistant", "model", "ai"})

# Heading or label lines some platforms prepend to generated summaries
_SUMMARY_HEADER_RE = re.compile(
    r"^\s*(?:#{1,6}\s*.*"
    r"|\*\*[^*]*\*\*:?\s*"
    r"|(?:conversation\s+)?(?:summary|overview|tl;?dr)\s*:?\s*)$",
    re.IGNORECASE,
)


def join_fragments(fragments: list) -> str:
    """Join the non-empty string fragments of a list with newlines."""
    return "\n".join(part for part in fragments if isinstance(part, str) and part)


def _block_text(block: object) -> str:
    if isinstance(block, str):
        return block
    if isinstance(block, dict) and isinstance(block.get("text"), str):
        return block["text"]
    return ""


def extract_message_content(item: object) -> str:
    """Flatten message content from the shapes platforms use.

    Handles, in priority order: a direct ``text`` or ``content`` string,
    ``content.text``, ``content.parts``, a ``content`` array of strings or
    text blocks, and a ``blocks`` array of typed blocks.

    Args:
        item: A message object

    Returns:
        Newline-joined text with empty fragments discarded, or "" if none
    """
    if not isinstance(item, dict):
        return ""

    if isinstance(item.get("text"), str):
        return item["text"]

    content = item.get("content")
    if isinstance(content, str):
        return content

    if isinstance(content, dict):
        if isinstance(content.get("text"), str):
            return content["text"]
        if isinstance(content.get("parts"), list):
            return join_fragments(content["parts"])

    if isinstance(content, list):
        return join_fragments([_block_text(part) for part in content])

    blocks = item.get("blocks")
    if isinstance(blocks, list):
        return join_fragments([
            block.get("text")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ])

    return ""


def classify_role(value: object) -> str | None:
    """Map a platform role label to user/assistant, or None if unclassifiable."""
    if not isinstance(value, str):
        return None
    lowered = value.lower()
    if lowered in USER_ROLES:
        return "user"
    if lowered in ASSISTANT_ROLES:
        return "assistant"
    return None


def extract_role(message: object) -> str | None:
    """Classify a message by its ``sender``, ``author`` or ``role`` field."""
    if not isinstance(message, dict):
        return None
    sender = message.get("sender") or message.get("author") or message.get("role")
    return classify_role(sender)


def normalize_summary(value: object) -> str | None:
    """Strip boilerplate header lines from a platform-supplied summary.

    Returns:
        The cleaned summary, or None when nothing meaningful remains
    """
    if not isinstance(value, str):
        return None

    lines = value.strip().splitlines()
    while lines and (not lines[0].strip() or _SUMMARY_HEADER_RE.match(lines[0])):
        lines.pop(0)

    text = re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()
    return text or None
