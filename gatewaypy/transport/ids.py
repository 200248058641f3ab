"""Thread-safe request and order id counters."""

from __future__ import annotations

import itertools
import threading

REQUEST_ID_START = 9000


class IdGenerator:
    """Monotonic counter; :meth:`next` post-increments.

    Safe from any thread. :meth:`set` racing a concurrent :meth:`next` is
    resolved last-store-wins.
    """

    def __init__(self, start: int = 0) -> None:
        self._start = start
        self._lock = threading.Lock()
        self._ticker = itertools.count(start)
        self._current = start

    def next(self) -> int:
        with self._lock:
            value = next(self._ticker)
            self._current = value + 1
        return value

    def current(self) -> int:
        """The value the next call to :meth:`next` will return."""
        with self._lock:
            return self._current

    def set(self, value: int) -> None:
        with self._lock:
            self._ticker = itertools.count(value)
            self._current = value

    def reset(self) -> None:
        self.set(self._start)

    def __repr__(self) -> str:
        return f"IdGenerator(current={self.current()})"


class ClientIdManager:
    """Request ids start at 9000; order ids are seeded from the gateway."""

    def __init__(self, initial_order_id: int = 0) -> None:
        self.request_ids = IdGenerator(REQUEST_ID_START)
        self.order_ids = IdGenerator(initial_order_id)

    def next_request_id(self) -> int:
        return self.request_ids.next()

    def next_order_id(self) -> int:
        return self.order_ids.next()

    def set_order_id(self, value: int) -> None:
        self.order_ids.set(value)
