from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, List, Optional

from . import config as CFG
from .cache import QueryCache
from .evaluator import Evaluator, JqEvaluator
from .history import History
from .loader import load_document, parse_document
from .models import Context, Result
from .orchestrator import QueryOrchestrator
from .render import RenderCache, max_display_width, render_window
from .scheduler import EventLoop, Scheduler
from .suggest import AutocompleteService, filter_keys_by_prefix
from .telemetry import LatencyTelemetry

log = logging.getLogger(__name__)

MODE_NORMAL = "normal"
MODE_AUTOCOMPLETE = "autocomplete"


class Engine:
    """
    One exploration session over one document.

    Glues together:
      - the query cache (compiled programs, key lists) over an evaluator,
      - the autocomplete service,
      - the orchestrator (debounce, cancel, stale-result filtering),
      - the render cache and telemetry,
    and keeps the view state a host draws from (filter, context, output
    lines, scroll offsets, suggestions).

    Everything here runs on the host's event loop thread; only filter runs
    and key lookups go to the background executor.
    """

    # ------------- lifecycle -------------

    def __init__(
        self,
        document: Any,
        *,
        evaluator: Optional[Evaluator] = None,
        scheduler: Optional[Scheduler] = None,
        executor: Optional[Executor] = None,
        telemetry: Optional[bool] = None,
        debounce: float = CFG.QUERY_DEBOUNCE,
        render_cache_size: int = CFG.RENDER_CACHE_SIZE,
        name: str = "",
        verbose: bool = False,
    ) -> None:
        if verbose or CFG.VERBOSE:
            logging.basicConfig(level=logging.INFO)
            os.environ["JQLIVE_VERBOSE"] = "1"

        self.name = name
        self.document = document
        self.evaluator = evaluator or JqEvaluator()
        self.cache = QueryCache(self.evaluator, document)
        self.autocomplete = AutocompleteService(self.cache)
        self.history = History()
        self.render_cache = RenderCache(render_cache_size)
        self.telemetry = LatencyTelemetry(enabled=CFG.TELEMETRY if telemetry is None else telemetry)

        self._own_loop = scheduler is None
        self.scheduler: Scheduler = scheduler or EventLoop()
        self.orchestrator = QueryOrchestrator(
            execute=self.cache.execute,
            get_filter=lambda: self.filter,
            on_commit=self._on_commit,
            scheduler=self.scheduler,
            executor=executor or ThreadPoolExecutor(max_workers=CFG.WORKERS, thread_name_prefix="jqlive"),
            telemetry=self.telemetry,
            debounce=debounce,
            keys_at=self.cache.keys_at,
            current_path=self.current_path,
            on_keys=self._on_keys,
        )

        # view state
        self.filter = "."
        self.context: Context = self.autocomplete.parse_context(self.filter)
        self.mode = MODE_NORMAL
        self.suggestions: List[str] = []
        self.selected_idx = 0
        self.available_keys: List[str] = []
        self.keys_path: Optional[str] = None
        self.result = Result()
        self.lines: List[str] = [""]
        self.max_line_width = 0
        self.x_offset = 0
        self.y_offset = 0
        self.width = 80

    @classmethod
    def from_json(cls, data: bytes | str, **kwargs: Any) -> "Engine":
        return cls(parse_document(data), **kwargs)

    @classmethod
    def from_path(cls, path: Optional[str], **kwargs: Any) -> "Engine":
        document, name = load_document(path)
        kwargs.setdefault("name", name)
        return cls(document, **kwargs)

    def start(self) -> None:
        """Run the initial filter and fetch root keys."""
        log.info("Session started: %s", self.name or "<document>")
        self.orchestrator.execute_now()
        self._maybe_fetch_keys()

    def shutdown(self) -> None:
        try:
            self.orchestrator.shutdown()
        finally:
            if self._own_loop and isinstance(self.scheduler, EventLoop):
                self.scheduler.close()
            log.info("Engine shutdown complete")

    # ------------- input -------------

    def set_filter(self, text: str) -> None:
        """Filter text changed: refresh the context now, execute after the debounce."""
        self.filter = text
        self.context = self.autocomplete.parse_context(text)
        self.orchestrator.queue()
        self._maybe_fetch_keys()

    def tab(self) -> List[str]:
        """Enter autocomplete mode and compute suggestions for the current filter."""
        self.mode = MODE_AUTOCOMPLETE
        before = text = self.filter
        # after an index/iterator, drill into the element's keys
        if text.endswith("]"):
            text += "."
            self.filter = text

        self.suggestions, self.context = self.autocomplete.suggest(text)
        self.selected_idx = 0

        inc = self.context.incomplete
        if len(self.suggestions) == 1 and inc and self.suggestions[0] == inc:
            text = text[:self.context.start_pos] + self.suggestions[0] + "."
            self.filter = text
            self.suggestions, self.context = self.autocomplete.suggest(text)
        if text != before:
            self.orchestrator.queue()
            self._maybe_fetch_keys()
        return self.suggestions

    def cycle_suggestion(self, step: int = 1) -> Optional[str]:
        if not self.suggestions:
            return None
        self.selected_idx = (self.selected_idx + step) % len(self.suggestions)
        return self.suggestions[self.selected_idx]

    def accept_suggestion(self) -> str:
        if self.suggestions:
            selected = self.suggestions[self.selected_idx]
            self.filter = self.autocomplete.apply(self.filter, self.context, selected)
        self.cancel_suggestions()
        self.context = self.autocomplete.parse_context(self.filter)
        self.orchestrator.execute_now()
        self._maybe_fetch_keys()
        return self.filter

    def cancel_suggestions(self) -> None:
        self.mode = MODE_NORMAL
        self.suggestions = []
        self.selected_idx = 0

    def select_history(self, item: str) -> None:
        self.filter = item
        self.mode = MODE_NORMAL
        self.context = self.autocomplete.parse_context(item)
        self.orchestrator.execute_now()
        self._maybe_fetch_keys()

    def commit(self) -> Optional[str]:
        """Accept the displayed output; records the filter in history. None on error."""
        if not self.result.ok or self.result.raw == "":
            return None
        self.history.add(self.filter)
        return self.result.raw

    # ------------- scrolling -------------

    def scroll(self, dy: int) -> None:
        self.y_offset = max(0, min(self.y_offset + dy, len(self.lines) - 1))

    def scroll_horizontal(self, dx: int) -> None:
        self.x_offset += dx
        self._clamp_x()

    def home(self) -> None:
        self.x_offset = 0

    def end(self) -> None:
        self.x_offset = self._max_x_offset()

    def resize(self, width: int) -> None:
        self.width = width
        self._clamp_x()

    # ------------- rendering -------------

    def visible_lines(self, width: Optional[int] = None, height: int = 24) -> List[str]:
        if width is not None and width != self.width:
            self.resize(width)
        return render_window(
            self.lines,
            self.render_cache,
            x_offset=self.x_offset,
            y_offset=self.y_offset,
            width=self.width,
            height=height,
            is_error=not self.result.ok,
        )

    def panel_keys(self) -> List[str]:
        """Keys for the side panel: current path's keys narrowed by the incomplete token."""
        return filter_keys_by_prefix(self.available_keys, self.context.incomplete)

    def current_path(self) -> str:
        return self.context.path or "."

    @property
    def running(self) -> bool:
        return self.orchestrator.running

    def telemetry_summary(self) -> Optional[str]:
        return self.telemetry.summary()

    # ------------- blocking helpers (CLI / web) -------------

    def run(self, filter_text: str, timeout: float = 10.0) -> Result:
        """Execute `filter_text` now and pump the loop until its result lands."""
        loop = self._require_loop()
        self.filter = filter_text
        self.context = self.autocomplete.parse_context(filter_text)
        self.orchestrator.execute_now()
        if not loop.run_until(lambda: not self.orchestrator.running, timeout=timeout):
            raise TimeoutError(f"filter did not finish within {timeout}s")
        return self.result

    def settle(self, timeout: float = 10.0) -> bool:
        """Pump the loop until nothing is debouncing, executing or fetching keys."""
        return self._require_loop().run_until(lambda: self.orchestrator.idle, timeout=timeout)

    # ------------- internals -------------

    def _require_loop(self) -> EventLoop:
        if not isinstance(self.scheduler, EventLoop):
            raise RuntimeError("blocking helpers need the built-in EventLoop scheduler")
        return self.scheduler

    def _on_commit(self, result: Result) -> None:
        self.result = result
        self.lines = result.lines()
        self.max_line_width = max_display_width(self.lines)
        self.y_offset = min(self.y_offset, max(0, len(self.lines) - 1))
        self._clamp_x()

    def _on_keys(self, path: str, keys: Optional[List[str]]) -> None:
        self.keys_path = path
        self.available_keys = keys or []

    def _maybe_fetch_keys(self) -> None:
        path = self.current_path()
        if path == self.keys_path or path == self.orchestrator.keys_in_flight:
            return
        self.available_keys = []
        self.orchestrator.request_keys(path)

    def _max_x_offset(self) -> int:
        return max(0, self.max_line_width - self.width)

    def _clamp_x(self) -> None:
        self.x_offset = max(0, min(self.x_offset, self._max_x_offset()))
