from __future__ import annotations
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import Cancelled
from .models import PendingSpan


class LatencyTelemetry:
    """
    Optional queued -> dispatch -> result latency sampling.

    Every hook is a no-op when disabled. Only touched from the event loop.
    """

    def __init__(self, enabled: bool = False, clock: Callable[[], float] = time.perf_counter) -> None:
        self.enabled = enabled
        self._clock = clock
        self.pending: Dict[int, PendingSpan] = {}

        self.key_to_frame: List[float] = []
        self.key_to_start: List[float] = []
        self.run_time: List[float] = []

        self.dropped_debounce = 0
        self.stale_results = 0
        self.canceled_results = 0

    def on_queued(self, seq: int) -> None:
        if not self.enabled:
            return
        self.pending[seq] = PendingSpan(queued_at=self._clock())

    def on_dispatch(self, seq: int) -> None:
        if not self.enabled:
            return
        span = self.pending.get(seq)
        if span is None:
            span = PendingSpan(queued_at=self._clock())
        span.dispatched_at = self._clock()
        self.pending[seq] = span
        if span.queued_at is not None:
            self.key_to_start.append(span.dispatched_at - span.queued_at)

    def on_debounce_dropped(self, seq: int) -> None:
        if not self.enabled:
            return
        if self.pending.pop(seq, None) is not None:
            self.dropped_debounce += 1

    def on_result(self, seq: int, error: Optional[BaseException], accepted: bool) -> None:
        if not self.enabled:
            return
        cancelled = isinstance(error, Cancelled)
        span = self.pending.pop(seq, None)
        if span is not None and accepted and not cancelled:
            now = self._clock()
            if span.queued_at is not None:
                self.key_to_frame.append(now - span.queued_at)
            if span.dispatched_at is not None:
                self.run_time.append(now - span.dispatched_at)
        if cancelled:
            self.canceled_results += 1
        if not accepted:
            self.stale_results += 1

    def summary(self) -> Optional[str]:
        """None when disabled; otherwise a one-line report."""
        if not self.enabled:
            return None
        if not self.key_to_frame:
            return "telemetry: no completed samples yet"

        k50, k95, k99 = percentiles(self.key_to_frame)
        s50, s95, s99 = percentiles(self.key_to_start)
        r50, r95, r99 = percentiles(self.run_time)
        return (
            f"telemetry keypress->frame samples={len(self.key_to_frame)} "
            f"p50={_ms(k50)} p95={_ms(k95)} p99={_ms(k99)} | "
            f"keypress->dispatch p50={_ms(s50)} p95={_ms(s95)} p99={_ms(s99)} | "
            f"execute p50={_ms(r50)} p95={_ms(r95)} p99={_ms(r99)} | "
            f"dropped(debounce)={self.dropped_debounce} stale={self.stale_results} "
            f"canceled={self.canceled_results}"
        )


def percentiles(values: Sequence[float]) -> Tuple[float, float, float]:
    if not values:
        return 0.0, 0.0, 0.0
    ordered = sorted(values)
    return percentile(ordered, 50), percentile(ordered, 95), percentile(ordered, 99)


def percentile(ordered: Sequence[float], p: int) -> float:
    if not ordered:
        return 0.0
    if p <= 0:
        return ordered[0]
    if p >= 100:
        return ordered[-1]
    return ordered[int((len(ordered) - 1) * p / 100)]


def _ms(seconds: float) -> str:
    return f"{seconds * 1000:.1f}ms"
