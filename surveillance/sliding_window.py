"""Sliding window for per-company event accumulation.

Eviction runs on event time: the cutoff is derived from the timestamp of the
event being added, never from the wall clock, so replaying a file from years
ago behaves exactly like a live feed.  Deque-based: O(1) append, amortized
O(1) eviction while timestamps arrive in order.
"""

from collections import deque

from surveillance.events import TradeEvent


class SlidingWindow:
    __slots__ = ("max_age", "_buf", "_in_order")

    def __init__(self, max_age_seconds: int):
        self.max_age = max_age_seconds
        self._buf: deque[TradeEvent] = deque()
        # Front-only eviction is exact only while timestamps never go backwards.
        self._in_order = True

    def add(self, event: TradeEvent) -> None:
        """Append event, then evict everything older than event.timestamp - max_age."""
        if self._buf and event.timestamp < self._buf[-1].timestamp:
            self._in_order = False
        self._buf.append(event)
        self._evict(event.timestamp - self.max_age)

    def events(self) -> list[TradeEvent]:
        """Return the retained events in arrival order."""
        return list(self._buf)

    def clear(self) -> None:
        self._buf.clear()
        self._in_order = True

    def _evict(self, cutoff: float) -> None:
        # Strict <: an event exactly max_age old stays in the window.
        if self._in_order:
            while self._buf and self._buf[0].timestamp < cutoff:
                self._buf.popleft()
            return
        self._buf = deque(e for e in self._buf if e.timestamp >= cutoff)
        timestamps = [e.timestamp for e in self._buf]
        self._in_order = timestamps == sorted(timestamps)

    def __len__(self) -> int:
        return len(self._buf)

    def __iter__(self):
        return iter(self._buf)
