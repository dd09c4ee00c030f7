"""Schedulers that run hold-expiry callbacks after a delay.

A scheduler exposes ``schedule(delay, callback) -> handle``, ``cancel(handle)``
and ``shutdown()``. Handles are opaque to the caller. ``cancel`` only prevents
callbacks that have not started yet, so callbacks must re-validate whatever
state they act on.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Protocol, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class ExpiryScheduler(Protocol):
    def schedule(self, delay: float, callback: Callback) -> object: ...

    def cancel(self, handle: object) -> None: ...

    def shutdown(self) -> None: ...


class TimerScheduler:
    """Runs each callback on its own daemon ``threading.Timer``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Set[threading.Timer] = set()
        self._closed = False

    def schedule(self, delay: float, callback: Callback) -> threading.Timer:
        timer: threading.Timer

        def run() -> None:
            with self._lock:
                self._pending.discard(timer)
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed")

        timer = threading.Timer(delay, run)
        timer.daemon = True
        with self._lock:
            if self._closed:
                raise RuntimeError("scheduler has been shut down")
            self._pending.add(timer)
        timer.start()
        return timer

    def cancel(self, handle: object) -> None:
        if not isinstance(handle, threading.Timer):
            return
        handle.cancel()
        with self._lock:
            self._pending.discard(handle)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            pending = list(self._pending)
            self._pending.clear()
        for timer in pending:
            timer.cancel()
        if pending:
            logger.info("Cancelled %d pending expiry timer(s)", len(pending))


@dataclass(order=True)
class _ManualEntry:
    deadline: float
    sequence: int
    callback: Callback = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualScheduler:
    """Deterministic scheduler driven by a virtual clock.

    Nothing runs until ``advance`` moves the clock past a deadline; due
    callbacks then run on the calling thread in deadline order.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()
        self._queue: List[_ManualEntry] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        with self._lock:
            return self._now

    def schedule(self, delay: float, callback: Callback) -> _ManualEntry:
        with self._lock:
            entry = _ManualEntry(self._now + delay, next(self._sequence), callback)
            heapq.heappush(self._queue, entry)
        return entry

    def cancel(self, handle: object) -> None:
        if isinstance(handle, _ManualEntry):
            handle.cancelled = True

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._queue if not entry.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every callback that came due."""

        fired = 0
        with self._lock:
            target = self._now + seconds
        while True:
            with self._lock:
                if not self._queue or self._queue[0].deadline > target:
                    self._now = target
                    return fired
                entry = heapq.heappop(self._queue)
                self._now = max(self._now, entry.deadline)
            if entry.cancelled:
                continue
            entry.callback()
            fired += 1

    def shutdown(self) -> None:
        with self._lock:
            for entry in self._queue:
                entry.cancelled = True
            self._queue.clear()

