from __future__ import annotations
import queue
import threading
import time
from typing import Any, Callable, Optional, Protocol


class Scheduler(Protocol):
    """What the orchestrator needs from the host event loop."""

    # fire-once timer; the callback runs on the loop thread
    def call_later(self, delay: float, callback: Callable[[], None]) -> Any: ...
    # hand a completion back to the loop from any thread
    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None: ...


class EventLoop:
    """
    Minimal single-threaded message loop for terminal and web hosts.

    Callbacks queued from timers and worker threads run only inside
    run_once()/run_pending()/run_until(), on whichever thread drives the
    loop, so state touched by them needs no locking.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._timers: set[threading.Timer] = set()
        self._timers_lock = threading.Lock()
        self._closed = False

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer: threading.Timer

        def fire() -> None:
            with self._timers_lock:
                self._timers.discard(timer)
            self.call_soon_threadsafe(callback)

        timer = threading.Timer(max(0.0, delay), fire)
        timer.daemon = True
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None:
        if not self._closed:
            self._queue.put(callback)

    def run_once(self, timeout: Optional[float] = None) -> bool:
        """Run one queued callback; False if none arrived within timeout."""
        try:
            callback = self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return False
        callback()
        return True

    def run_pending(self) -> int:
        n = 0
        while self.run_once():
            n += 1
        return n

    def run_until(self, predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while not predicate():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.run_once(timeout=min(remaining, 0.05))
        return True

    def close(self) -> None:
        self._closed = True
        with self._timers_lock:
            timers, self._timers = list(self._timers), set()
        for t in timers:
            t.cancel()
