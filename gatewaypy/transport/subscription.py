"""Consumer-side handle for a pending or streaming exchange."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from ..errors import (
    Cancelled,
    ConnectionReset,
    DecodeError,
    EndOfStream,
    UnexpectedResponse,
)
from ..protocol.messages import END_OF_STREAM, IncomingMessage
from ..protocol.wire import RequestMessage, ResponseMessage

if TYPE_CHECKING:
    from .bus import MessageBus

logger = logging.getLogger(__name__)

T = TypeVar("T")
Decoder = Callable[[ResponseMessage, int], Any]

_ITEM = "item"
_END = "end"
_ERROR = "error"


class SubscriptionState(Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    (SubscriptionState.COMPLETED, SubscriptionState.CANCELLED, SubscriptionState.FAILED)
)


class Subscription(Generic[T]):
    """Items decoded from frames routed here by the :class:`MessageBus`.

    Consume with ``await sub.next()``, ``async for item in sub`` or, for a
    one-shot exchange, ``await sub.result()``. ``next()`` returns ``None``
    once the stream has ended and raises the stored error if it failed.
    Cancelling deregisters the routing entry first, so frames that arrive
    afterwards are dropped, then sends the cancel message if one exists.
    """

    def __init__(
        self,
        bus: "MessageBus",
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
        request_id: Optional[int] = None,
        order_id: Optional[int] = None,
        message_types: Tuple[IncomingMessage, ...] = (),
    ) -> None:
        self._bus = bus
        self._decoder = decoder
        self._cancel_message = cancel_message
        self._cancel_sent = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._error: Optional[BaseException] = None
        self.one_shot = one_shot
        self.request_id = request_id
        self.order_id = order_id
        self.message_types = tuple(message_types)
        self.state = SubscriptionState.PENDING

    def __repr__(self) -> str:
        if self.request_id is not None:
            key = f"request_id={self.request_id}"
        elif self.order_id is not None:
            key = f"order_id={self.order_id}"
        else:
            key = "types=" + ",".join(t.name for t in self.message_types)
        return f"<Subscription {key} state={self.state.value}>"

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    # ---- Producer side (called by the bus on the loop thread) --------------

    def _feed(self, message: ResponseMessage) -> None:
        if self.done:
            logger.debug("%r dropping late message %s", self, message.encode_simple())
            return
        if message.message_type in END_OF_STREAM:
            self._complete()
            return
        # Broadcast frames reach several subscriptions; each decodes from its own cursor.
        message = ResponseMessage(message.fields)
        try:
            item = message if self._decoder is None else self._decoder(message, self._bus.server_version)
        except EndOfStream:
            self._complete()
            return
        except UnexpectedResponse as e:
            logger.warning("%r skipping %s", self, e)
            return
        except DecodeError as e:
            logger.error("%r could not decode %s: %s", self, message.encode_simple(), e)
            if self.one_shot:
                self._fail(e)
            return
        self.state = SubscriptionState.STREAMING
        self._queue.put_nowait((_ITEM, item))
        if self.one_shot:
            self._complete()

    def _complete(self) -> None:
        if self.done:
            return
        self.state = SubscriptionState.COMPLETED
        self._bus._release(self)
        self._queue.put_nowait((_END, None))

    def _fail(self, error: BaseException) -> None:
        if self.done:
            return
        self.state = SubscriptionState.FAILED
        self._error = error
        self._bus._release(self)
        self._queue.put_nowait((_ERROR, error))

    # ---- Consumer side ------------------------------------------------------

    async def next(self, timeout: Optional[float] = None) -> Optional[T]:
        """Next item, ``None`` at end of stream.

        On timeout ``asyncio.TimeoutError`` is raised and the subscription
        stays open.
        """
        if timeout is None:
            kind, payload = await self._queue.get()
        else:
            kind, payload = await asyncio.wait_for(self._queue.get(), timeout)
        if kind == _ITEM:
            return payload
        # Terminal marker stays queued so every later call sees it too.
        self._queue.put_nowait((kind, payload))
        if kind == _ERROR:
            raise payload
        return None

    async def result(self, timeout: Optional[float] = None) -> T:
        """The single item of a one-shot exchange."""
        item = await self.next(timeout)
        if item is None:
            if self.state == SubscriptionState.CANCELLED:
                raise Cancelled("subscription was cancelled before a response arrived")
            raise UnexpectedResponse("end of stream before any response")
        return item

    async def collect(self, timeout: Optional[float] = None) -> List[T]:
        """Every remaining item up to the end of a finite stream."""
        items: List[T] = []
        while True:
            item = await self.next(timeout)
            if item is None:
                return items
            items.append(item)

    async def cancel(self) -> None:
        """Stop the stream. Idempotent; a no-op once the stream has ended."""
        if self.done:
            return
        self.state = SubscriptionState.CANCELLED
        self._bus._release(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait((_END, None))

        if self._cancel_message is None or self._cancel_sent:
            return
        self._cancel_sent = True
        try:
            await self._bus.send_message(self._cancel_message)
        except ConnectionReset:
            logger.debug("%r cancel not sent, connection is closed", self)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cancel()
