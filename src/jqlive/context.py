from __future__ import annotations
from typing import Callable, Optional

from .models import Context


def parse_context(text: str, is_valid: Callable[[str], bool]) -> Context:
    """
    Derive the autocomplete context from raw filter text.

    The rightmost '|' resets the context even when it sits inside brackets;
    everything left of it is resolved separately by the suggestion service.
    Within the remaining segment the split point is the rightmost top-level
    '.' whose left-hand text is itself a valid filter prefix.
    """
    if text == "":
        return Context(path=".", incomplete="", start_pos=0)

    segment = text
    offset = 0
    pipe = text.rfind("|")
    if pipe >= 0:
        tail = text[pipe + 1:]
        segment = tail.lstrip()
        offset = pipe + 1 + (len(tail) - len(segment))

    dot = find_key_dot(segment, is_valid)
    if dot is None:
        if segment == "" or segment == ".":
            return Context(path=".", incomplete="", start_pos=offset + len(segment))
        if segment.startswith("."):
            return Context(path=".", incomplete=segment[1:], start_pos=offset + 1)
        return Context(path=".", incomplete=segment, start_pos=offset)

    return Context(
        path=segment[:dot] or ".",
        incomplete=segment[dot + 1:],
        start_pos=offset + dot + 1,
    )


def find_key_dot(segment: str, is_valid: Callable[[str], bool]) -> Optional[int]:
    """Index of the rightmost depth-zero '.' that starts a key access, or None."""
    depth = 0
    for i in range(len(segment) - 1, -1, -1):
        ch = segment[i]
        if ch == "]":
            depth += 1
        elif ch == "[":
            depth -= 1
        elif ch == "." and depth == 0:
            left = segment[:i]
            if left == "" or is_valid(left):
                return i
    return None
