"""Generic depth-first walker for schema-less JSON trees."""

from collections.abc import Callable
from dataclasses import dataclass

from chat_central.common.payloads import parse_json_safe

MAX_WALK_DEPTH = 50


@dataclass
class WalkHandlers:
    """Optional visitor hooks.

    A hook returning a truthy value stops the walk from descending into the
    node it was given. This is how a node that has been positively identified
    keeps its children from being interpreted again.
    """

    array: Callable[[list], bool | None] | None = None
    obj: Callable[[dict], bool | None] | None = None
    string: Callable[[str], bool | None] | None = None


def looks_like_json(value: str) -> bool:
    """Check whether a string could hold an embedded JSON array or object."""
    return value.startswith("[") or value.startswith("{")


def walk(value: object, handlers: WalkHandlers, depth: int = 0) -> None:
    """Visit every array, object and string in a decoded JSON value.

    Strings that look like embedded JSON are parsed and walked as well.
    Recursion stops at MAX_WALK_DEPTH so malformed inputs cannot exhaust
    the stack.

    Args:
        value: Any decoded JSON value
        handlers: Visitor hooks
        depth: Current recursion depth
    """
    if value is None or depth > MAX_WALK_DEPTH:
        return

    if isinstance(value, list):
        if handlers.array and handlers.array(value):
            return
        for item in value:
            walk(item, handlers, depth + 1)
        return

    if isinstance(value, dict):
        if handlers.obj and handlers.obj(value):
            return
        for item in value.values():
            walk(item, handlers, depth + 1)
        return

    if isinstance(value, str):
        if handlers.string and handlers.string(value):
            return
        if looks_like_json(value):
            parsed = parse_json_safe(value)
            if parsed:
                walk(parsed, handlers, depth + 1)
