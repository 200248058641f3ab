"""Immediate retry of idempotent one-shot calls across a connection reset,
and the backoff used to re-open the connection itself."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import ConnectionReset, GatewayError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

T = TypeVar("T")


async def retry_on_connection_reset(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """Await ``operation()``, calling it again on :class:`ConnectionReset`.

    At most ``max_retries + 1`` calls are made. Other errors, and the last
    reset once retries are exhausted, propagate unchanged. Only use this for
    requests whose whole result arrives in one exchange; never for
    subscriptions.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except ConnectionReset:
            if attempt >= max_retries:
                raise
            attempt += 1
            logger.debug("connection reset, retrying (%d of %d)", attempt, max_retries)


class FibonacciBackoff:
    """Delays of 1, 2, 3, 5, 8, ... ``unit`` seconds, capped at ``max_delay``."""

    def __init__(self, max_delay: float = 30.0, unit: float = 1.0) -> None:
        self.max_delay = max_delay
        self.unit = unit
        self._previous = 0
        self._current = 1

    def next_delay(self) -> float:
        step = self._previous + self._current
        self._previous, self._current = self._current, step
        return min(step * self.unit, self.max_delay)


async def reconnect_with_backoff(
    connect: Callable[[], Awaitable[T]],
    attempts: int,
    backoff: FibonacciBackoff,
) -> Optional[T]:
    """Call ``connect()`` up to ``attempts`` times, sleeping before each call.

    Returns the first successful result, or ``None`` once every attempt has
    failed with a :class:`GatewayError`.
    """
    for attempt in range(1, attempts + 1):
        delay = backoff.next_delay()
        logger.info("next reconnection attempt in %.2fs", delay)
        await asyncio.sleep(delay)
        try:
            return await connect()
        except GatewayError as e:
            logger.info("reconnection attempt %d/%d failed: %s", attempt, attempts, e)
    return None
