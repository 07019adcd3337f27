"""Cancellable one-shot timers used to drive autoplay and replay.

Both schedulers expose the same surface:

    handle = scheduler.call_later(delay_ms, callback)
    handle.cancel()          # idempotent; the callback will not run afterwards

and a shared re-entrant ``lock``. Every callback runs while holding that
lock, and the match orchestrator takes the same lock for its own intents,
so timer ticks and manual operations never interleave.
"""

import heapq
import itertools
import logging
import threading
from typing import Callable, List, Optional, Tuple

log = logging.getLogger(__name__)


class TaskHandle:
    """Handle for one scheduled callback."""

    def __init__(self, delay_ms: int):
        self.delay_ms = delay_ms
        self._cancelled = False
        self._fired = False
        self._timer: Optional[threading.Timer] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)

    def cancel(self):
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()


class ThreadingScheduler:
    """Real-time scheduler backed by ``threading.Timer``."""

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TaskHandle:
        handle = TaskHandle(delay_ms)

        def fire():
            with self.lock:
                # cancel() may have raced the timer expiry
                if handle.cancelled:
                    return
                handle._fired = True
                callback()

        timer = threading.Timer(delay_ms / 1000.0, fire)
        timer.daemon = True
        handle._timer = timer
        timer.start()
        return handle


class ManualScheduler:
    """Virtual clock. Nothing fires until ``advance`` or ``run_all`` is called."""

    def __init__(self):
        self.lock = threading.RLock()
        self.now_ms = 0
        self._queue: List[Tuple[int, int, TaskHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TaskHandle:
        handle = TaskHandle(delay_ms)
        with self.lock:
            heapq.heappush(self._queue, (self.now_ms + delay_ms, next(self._seq), handle, callback))
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if h.pending)

    def advance(self, ms: int) -> int:
        """Move the clock forward by `ms`, firing due callbacks in order. Returns the number fired."""
        target = self.now_ms + ms
        fired = 0
        with self.lock:
            while self._queue and self._queue[0][0] <= target:
                due, _, handle, callback = heapq.heappop(self._queue)
                self.now_ms = due
                if handle.cancelled:
                    continue
                handle._fired = True
                callback()
                fired += 1
            self.now_ms = target
        return fired

    def run_all(self, limit: int = 10000) -> int:
        """Fire everything queued, including callbacks scheduled along the way."""
        fired = 0
        with self.lock:
            while self._queue and fired < limit:
                due, _, handle, callback = heapq.heappop(self._queue)
                self.now_ms = max(self.now_ms, due)
                if handle.cancelled:
                    continue
                handle._fired = True
                callback()
                fired += 1
        if fired >= limit:
            log.warning("ManualScheduler.run_all stopped after %d callbacks", limit)
        return fired
