from __future__ import annotations
import os

# Debounce between the last keystroke and dispatching the filter (seconds)
QUERY_DEBOUNCE: float = int(os.environ.get("JQLIVE_DEBOUNCE_MS", "30")) / 1000.0

# Styled-line cache for the output pane (FIFO, entries)
RENDER_CACHE_SIZE: int = 4096

# /* ~~~ cap index hints offered for arrays so huge arrays stay cheap in the UI ~~~ */
MAX_ARRAY_HINTS: int = 256

# Recent filters kept per session (in memory only)
MAX_HISTORY: int = 50

# Background threads for filter execution and key lookups
WORKERS: int = 4

# Pretty-printer: sort object keys in output
SORT_KEYS: bool = True
INDENT: int = 2

# Marker drawn on a truncated side of a clipped line
ELLIPSIS: str = "…"

# Latency telemetry (set JQLIVE_TELEMETRY=1 to enable)
TELEMETRY: bool = os.environ.get("JQLIVE_TELEMETRY") == "1"

# Progress logging (set JQLIVE_VERBOSE=1 to enable)
VERBOSE: bool = os.environ.get("JQLIVE_VERBOSE") == "1"
