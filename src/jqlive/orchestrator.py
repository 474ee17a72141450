from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional

from . import config as CFG
from .errors import EvaluationError, QueryError
from .evaluator import CancelToken
from .models import Result
from .scheduler import Scheduler
from .telemetry import LatencyTelemetry

log = logging.getLogger(__name__)


class QueryOrchestrator:
    """
    Sequences, debounces, cancels and reconciles background filter runs.

    Every input change mints a new sequence number; only the sequence of the
    most recent dispatch ("active") may update the display, so a slow older
    run can never overwrite a newer result whatever order they finish in.
    All methods except the background task bodies run on the event loop.

    Hooks:
      * execute(text, token) -> Result   runs on a worker thread
      * get_filter() -> str              filter text at dispatch time
      * on_commit(result)                accepted result
      * keys_at(path) -> list[str]       runs on a worker thread
      * current_path() -> str            context path keys must still match
      * on_keys(path, keys)              accepted key list (None on error)
    """

    def __init__(
        self,
        *,
        execute: Callable[[str, CancelToken], Result],
        get_filter: Callable[[], str],
        on_commit: Callable[[Result], None],
        scheduler: Scheduler,
        executor: Executor,
        telemetry: Optional[LatencyTelemetry] = None,
        debounce: float = CFG.QUERY_DEBOUNCE,
        keys_at: Optional[Callable[[str], List[str]]] = None,
        current_path: Optional[Callable[[], str]] = None,
        on_keys: Optional[Callable[[str, Optional[List[str]]], None]] = None,
    ) -> None:
        self._execute = execute
        self._get_filter = get_filter
        self._on_commit = on_commit
        self._scheduler = scheduler
        self._executor = executor
        self.telemetry = telemetry or LatencyTelemetry(enabled=False)
        self.debounce = debounce
        self._keys_at = keys_at
        self._current_path = current_path
        self._on_keys = on_keys

        self.query_seq = 0
        self.active_seq = 0
        self.running = False
        self._token: Optional[CancelToken] = None
        self.keys_in_flight: Optional[str] = None

    # ------------- execution -------------

    def queue(self) -> int:
        """Record an input change; dispatch after the debounce unless superseded."""
        self.query_seq += 1
        seq = self.query_seq
        self.telemetry.on_queued(seq)
        self._scheduler.call_later(self.debounce, lambda: self._debounce_fired(seq))
        return seq

    def _debounce_fired(self, seq: int) -> None:
        if seq != self.query_seq:
            self.telemetry.on_debounce_dropped(seq)
            return
        self.dispatch(seq)

    def execute_now(self) -> int:
        """Explicit commit (accepted suggestion, history pick): skip the debounce."""
        self.query_seq += 1
        seq = self.query_seq
        self.telemetry.on_queued(seq)
        self.dispatch(seq)
        return seq

    def dispatch(self, seq: int) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

        self.active_seq = seq
        self.running = True
        self.telemetry.on_dispatch(seq)

        text = self._get_filter()
        token = CancelToken()
        self._token = token
        log.debug("dispatch seq=%d filter=%r", seq, text)

        future = self._executor.submit(self._execute, text, token)
        future.add_done_callback(
            lambda f: self._scheduler.call_soon_threadsafe(lambda: self.on_result(seq, _result_of(f)))
        )

    def on_result(self, seq: int, result: Result) -> bool:
        """Apply a finished run if it is still current. True when committed."""
        accepted = seq == self.active_seq
        self.telemetry.on_result(seq, result.error, accepted)
        if not accepted:
            log.debug("stale result seq=%d (active=%d)", seq, self.active_seq)
            return False

        self.running = False
        self._token = None
        if result.cancelled:
            return False
        self._on_commit(result)
        return True

    @property
    def idle(self) -> bool:
        # a queued sequence not yet dispatched counts as busy
        return self.query_seq == self.active_seq and not self.running and self.keys_in_flight is None

    # ------------- keys -------------

    def request_keys(self, path: str) -> None:
        if self._keys_at is None:
            return
        path = path or "."
        self.keys_in_flight = path
        keys_at = self._keys_at

        def task() -> tuple[Optional[List[str]], Optional[QueryError]]:
            try:
                return keys_at(path), None
            except QueryError as exc:
                return None, exc
            except Exception as exc:
                log.exception("key lookup failed for %r", path)
                return None, EvaluationError(str(exc))

        future = self._executor.submit(task)
        future.add_done_callback(
            lambda f: self._scheduler.call_soon_threadsafe(lambda: self.on_keys(path, *f.result()))
        )

    def on_keys(self, path: str, keys: Optional[List[str]], err: Optional[QueryError] = None) -> bool:
        if self.keys_in_flight == path:
            self.keys_in_flight = None
        current = self._current_path() if self._current_path else path
        if path != current:
            return False
        if self._on_keys is not None:
            self._on_keys(path, None if err is not None else keys)
        return True

    # ------------- lifecycle -------------

    def shutdown(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self._executor.shutdown(wait=False)


def _result_of(future: Future) -> Result:
    exc = future.exception()
    if exc is None:
        return future.result()
    if isinstance(exc, QueryError):
        return Result(error=exc)
    log.exception("filter execution failed", exc_info=exc)
    return Result(error=EvaluationError(str(exc)))
