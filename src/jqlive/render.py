from __future__ import annotations
import re
from typing import Dict, Iterable, List, Tuple

from rich.cells import get_character_cell_size

from . import config as CFG

# Raw ANSI colours for JSON highlighting (kept raw so they survive padding/joining)
ANSI_RESET = "\x1b[0m"
ANSI_CYAN = "\x1b[36m"      # keys
ANSI_GREEN = "\x1b[32m"     # strings
ANSI_YELLOW = "\x1b[33m"    # numbers
ANSI_MAGENTA = "\x1b[35m"   # booleans
ANSI_GRAY = "\x1b[90m"      # null
ANSI_WHITE = "\x1b[37m"     # brackets
ANSI_RED = "\x1b[31m"       # errors

_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_NUMBER_RE = re.compile(r":\s*(-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)")
_BOOL_RE = re.compile(r":\s*(true|false)")
_NULL_RE = re.compile(r":\s*(null)")
_KEY_RE = re.compile(r'"([^"]+)"(\s*:)')
_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

_BRACKETS = str.maketrans({
    "{": ANSI_WHITE + "{" + ANSI_RESET,
    "}": ANSI_WHITE + "}" + ANSI_RESET,
    "[": ANSI_WHITE + "[" + ANSI_RESET,
    "]": ANSI_WHITE + "]" + ANSI_RESET,
})


class RenderCache:
    """
    Bounded map of clipped raw line -> coloured line.

    Eviction is strict FIFO by insertion order; hits do not refresh an entry.
    Keys are the text after horizontal clipping, so every scroll offset
    produces its own entries.
    """

    def __init__(self, max_entries: int = CFG.RENDER_CACHE_SIZE) -> None:
        self.max_entries = max(1, int(max_entries))
        self._lines: Dict[str, str] = {}

    def colorize(self, line: str) -> str:
        if line == "":
            return ""
        colored = self._lines.get(line)
        if colored is not None:
            return colored

        colored = colorize_json(line)
        self._lines[line] = colored
        if len(self._lines) > self.max_entries:
            # dicts keep insertion order: the first key is the oldest
            del self._lines[next(iter(self._lines))]
        return colored

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, line: object) -> bool:
        return line in self._lines


def colorize_json(s: str) -> str:
    # brackets first, in one pass; the escape codes themselves contain '['
    out = s.translate(_BRACKETS)

    # keys: colour goes inside the quotes so the string pass skips them
    out = _KEY_RE.sub(lambda m: '"' + ANSI_CYAN + m.group(1) + ANSI_RESET + '"' + m.group(2), out)
    out = _STRING_RE.sub(lambda m: m.group(0) if "\x1b[" in m.group(0) else ANSI_GREEN + m.group(0) + ANSI_RESET, out)
    out = _NUMBER_RE.sub(lambda m: ": " + ANSI_YELLOW + m.group(1) + ANSI_RESET, out)
    out = _BOOL_RE.sub(lambda m: ": " + ANSI_MAGENTA + m.group(1) + ANSI_RESET, out)
    out = _NULL_RE.sub(lambda m: ": " + ANSI_GRAY + m.group(1) + ANSI_RESET, out)
    return out


def colorize_error(s: str) -> str:
    return ANSI_RED + s + ANSI_RESET if s else ""


# ---- display width ----

def char_width(ch: str) -> int:
    # zero-width code points still take a cell here so clip, pad and ellipsis agree
    return max(1, get_character_cell_size(ch))


def display_width(text: str) -> int:
    return sum(char_width(ch) for ch in text)


def strip_ansi(styled: str) -> str:
    return _ANSI_RE.sub("", styled)


def visible_width(styled: str) -> int:
    return display_width(strip_ansi(styled))


def max_display_width(lines: Iterable[str]) -> int:
    return max((display_width(line) for line in lines), default=0)


def trim_to_width(text: str, width: int) -> str:
    if width <= 0:
        return ""
    used = 0
    for i, ch in enumerate(text):
        w = char_width(ch)
        if used + w > width:
            return text[:i]
        used += w
    return text


# ---- horizontal windowing ----

def clip_line(line: str, x_offset: int, width: int) -> Tuple[str, bool, bool]:
    """Visible slice of `line` starting `x_offset` cells in, plus (left_cut, right_cut)."""
    if width <= 0:
        return "", x_offset > 0, len(line) > 0
    if line == "":
        return "", x_offset > 0, False

    x_offset = max(0, x_offset)
    widths = [char_width(ch) for ch in line]
    total = sum(widths)
    x_offset = min(x_offset, total)

    start = len(line)
    seen = 0
    for i, w in enumerate(widths):
        if seen + w > x_offset:
            start = i
            break
        seen += w

    end = start
    visible = 0
    for i in range(start, len(line)):
        if visible + widths[i] > width:
            break
        visible += widths[i]
        end = i + 1

    return line[start:end], x_offset > 0, (x_offset + visible) < total


def with_ellipsis(text: str, width: int, left_cut: bool, right_cut: bool) -> str:
    """
    Mark truncated sides with an ellipsis cell each. When either side is cut
    the result is exactly `width` cells wide (space-filled before a right
    marker or after the content).
    """
    if width <= 0:
        return ""
    if not left_cut and not right_cut:
        return text

    mark = CFG.ELLIPSIS
    if width == 1:
        return mark

    if left_cut and right_cut:
        body = trim_to_width(text, width - 2)
        return mark + body + " " * (width - 2 - display_width(body)) + mark
    body = trim_to_width(text, width - 1)
    fill = " " * (width - 1 - display_width(body))
    if left_cut:
        return mark + body + fill
    return body + fill + mark


def window_line(line: str, x_offset: int, width: int) -> Tuple[str, bool, bool]:
    text, left_cut, right_cut = clip_line(line, x_offset, width)
    return with_ellipsis(text, width, left_cut, right_cut), left_cut, right_cut


def pad_to_width(styled: str, width: int) -> str:
    gap = width - visible_width(styled)
    return styled + " " * gap if gap > 0 else styled


def render_window(
    lines: List[str],
    cache: RenderCache,
    *,
    x_offset: int,
    y_offset: int,
    width: int,
    height: int,
    is_error: bool = False,
) -> List[str]:
    """Styled, width-padded rows for the visible part of `lines`."""
    if height <= 0:
        return []
    lines = lines or [""]
    start = min(max(0, y_offset), len(lines))
    rows: List[str] = []
    for raw in lines[start:start + height]:
        clipped, _, _ = window_line(raw, x_offset, width)
        styled = colorize_error(clipped) if is_error else cache.colorize(clipped)
        rows.append(pad_to_width(styled, width))
    blank = " " * max(0, width)
    while len(rows) < height:
        rows.append(blank)
    return rows
