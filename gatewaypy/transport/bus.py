# bus.py
"""
Dispatcher: the single reader of the gateway socket.

Each incoming frame is routed, in order, to
    - the subscription registered for its request id,
    - the subscription registered for its order id (commission reports follow
      the execution id of an execution routed earlier),
    - every subscription registered for its message type (broadcasts).
Anything else is logged and dropped. When a read fails the dispatcher asks for a
fresh connection; either way every open subscription then fails with
ConnectionReset. Subscriptions are never resumed on the new connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from ..errors import (
    UNSPECIFIED_REQUEST_ID,
    AlreadySubscribed,
    ConnectionReset,
    DecodeError,
    GatewayError,
    NotConnected,
    Notice,
    ServerError,
)
from ..protocol import versions
from ..protocol.parsers import parse_message
from ..protocol.messages import (
    BROADCAST_CHANNELS,
    ORDER_UPDATE_MESSAGES,
    IncomingMessage,
    OutgoingMessage,
)
from ..protocol.wire import RequestMessage, ResponseMessage
from .connection import Connection, ConnectionState
from .ids import ClientIdManager
from .subscription import Decoder, Subscription

logger = logging.getLogger(__name__)

NoticeCallback = Callable[[Notice], None]
# Opens and handshakes a replacement connection; None when every attempt failed.
Reconnect = Callable[[], Awaitable[Optional[Connection]]]


def decode_error(message: ResponseMessage, server_version: int) -> Notice:
    """Read an Error frame: ``4|version|request_id|code|text[|advanced_reject]``."""
    m = ResponseMessage(message.fields)
    m.skip(2)
    request_id = m.next_int()
    code = m.next_int()
    text = m.next_string()
    advanced = ""
    if versions.is_supported(server_version, versions.ADVANCED_ORDER_REJECT) and m.remaining():
        advanced = m.next_string()
    return Notice(code, text, request_id, advanced)


class MessageBus:
    def __init__(
        self,
        connection: Connection,
        ids: ClientIdManager,
        notice_callback: Optional[NoticeCallback] = None,
        reconnect: Optional[Reconnect] = None,
    ) -> None:
        self.connection = connection
        self.reconnect = reconnect
        self.ids = ids
        self.notice_callback = notice_callback
        self._requests: Dict[int, Subscription] = {}
        self._orders: Dict[int, Subscription] = {}
        self._executions: Dict[str, Subscription] = {}
        self._broadcasts: Dict[IncomingMessage, List[Subscription]] = defaultdict(list)
        self._order_updates: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self._reconnected: Optional[asyncio.Event] = None

    @property
    def server_version(self) -> int:
        return self.connection.server_version

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.ensure_future(self._dispatch_loop())

    async def stop(self) -> None:
        """Stop reading, close the socket and end every open subscription."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.connection.close()
        self._reset(ConnectionReset("connection closed by client"))

    async def _dispatch_loop(self) -> None:
        error: GatewayError = ConnectionReset()
        try:
            while True:
                try:
                    await self._read_messages()
                    break
                except (asyncio.IncompleteReadError, ConnectionError, OSError) as e:
                    logger.error("connection lost (will attempt reconnect): %r", e)
                await self.connection.close()
                if not await self._reconnect():
                    break
                # Requests sent on the old socket will never be answered.
                self._reset(ConnectionReset())
        except DecodeError as e:
            logger.error("corrupt frame, closing connection: %s", e)
            error = ConnectionReset(f"corrupt frame: {e}")
        except asyncio.CancelledError:
            error = ConnectionReset("connection closed by client")
            raise
        except Exception:
            logger.exception("dispatcher failed")
        finally:
            self.connection.mark_closed()
            self._reset(error)

    async def _read_messages(self) -> None:
        """Route frames until the gateway sends shutdown; read failures propagate."""
        while True:
            message = await self.connection.read_message()
            if message.is_shutdown:
                logger.warning("gateway sent shutdown")
                return
            try:
                self._route(message)
            except GatewayError as e:
                logger.error("could not route %s: %s", message.encode_simple(), e)
            except Exception:
                logger.exception("could not route %s", message.encode_simple())

    async def _reconnect(self) -> bool:
        if self.reconnect is None:
            return False
        self._reconnected = asyncio.Event()
        try:
            connection = await self.reconnect()
        finally:
            self._reconnected.set()
            self._reconnected = None
        if connection is None:
            logger.error("failed to reconnect to the gateway")
            return False
        self.connection = connection
        logger.info("reconnected to the gateway")
        return True

    async def _wait_for_reconnect(self) -> None:
        if self._reconnected is not None:
            await self._reconnected.wait()

    def _reset(self, error: GatewayError) -> None:
        open_subscriptions = self._all_subscriptions()
        self._requests.clear()
        self._orders.clear()
        self._executions.clear()
        self._broadcasts.clear()
        self._order_updates = None
        for subscription in open_subscriptions:
            subscription._fail(error)

    def _all_subscriptions(self) -> List[Subscription]:
        seen: Set[int] = set()
        out: List[Subscription] = []
        candidates: Iterable[Subscription] = [
            *self._requests.values(),
            *self._orders.values(),
            *self._executions.values(),
            *(s for subs in self._broadcasts.values() for s in subs),
        ]
        if self._order_updates is not None:
            candidates = [*candidates, self._order_updates]
        for subscription in candidates:
            if id(subscription) not in seen:
                seen.add(id(subscription))
                out.append(subscription)
        return out

    # ---- Routing ------------------------------------------------------------

    def _route(self, message: ResponseMessage) -> None:
        message_type = message.message_type

        if message_type == IncomingMessage.NEXT_VALID_ID:
            order_id = message.peek_int(2)
            self.ids.set_order_id(order_id)
            logger.debug("next valid order id is %d", order_id)
            self._fan_out(message_type, message)
            return

        if message_type == IncomingMessage.ERROR:
            self._route_error(message)
            return

        request_id = message.request_id
        if request_id is not None and request_id in self._requests:
            subscription = self._requests[request_id]
            self._remember_execution(message, subscription)
            subscription._feed(message)
            return

        if message_type in ORDER_UPDATE_MESSAGES:
            routed = self._route_order(message)
            if self._order_updates is not None:
                self._order_updates._feed(message)
                routed = True
            if routed:
                return

        if self._fan_out(message_type, message):
            return

        if logger.isEnabledFor(logging.INFO):
            logger.info("no consumer for %s, dropping", parse_message(message, self.server_version))

    def _route_order(self, message: ResponseMessage) -> bool:
        if message.message_type == IncomingMessage.COMMISSIONS_REPORT:
            subscription = self._executions.get(message.execution_id or "")
        else:
            subscription = self._orders.get(message.order_id) if message.order_id is not None else None
        if subscription is None:
            return False
        self._remember_execution(message, subscription)
        subscription._feed(message)
        return True

    def _remember_execution(self, message: ResponseMessage, subscription: Subscription) -> None:
        if message.message_type == IncomingMessage.EXECUTION_DATA:
            execution_id = message.execution_id
            if execution_id:
                self._executions[execution_id] = subscription

    def _fan_out(self, message_type: IncomingMessage, message: ResponseMessage) -> bool:
        subscriptions = list(self._broadcasts.get(message_type, ()))
        for subscription in subscriptions:
            subscription._feed(message)
        return bool(subscriptions)

    def _route_error(self, message: ResponseMessage) -> None:
        notice = decode_error(message, self.server_version)
        target = None
        if notice.request_id != UNSPECIFIED_REQUEST_ID and not notice.is_warning:
            target = self._requests.get(notice.request_id) or self._orders.get(notice.request_id)

        if target is not None:
            logger.debug("error for request %d: %s", notice.request_id, notice)
            target._fail(
                ServerError(notice.code, notice.message, notice.request_id, notice.advanced_order_reject)
            )
            return

        if notice.is_warning:
            logger.warning("gateway notice %s", notice)
        else:
            logger.error("gateway error %s (request %d)", notice, notice.request_id)
        if self.notice_callback is not None:
            try:
                self.notice_callback(notice)
            except Exception:
                logger.exception("notice callback raised")
        self._fan_out(IncomingMessage.ERROR, message)

    # ---- Registration -------------------------------------------------------

    def _ensure_ready(self) -> None:
        if not self.connection.is_ready:
            if self.connection.state == ConnectionState.CLOSED:
                raise ConnectionReset()
            raise NotConnected("connection is not ready")

    def _release(self, subscription: Subscription) -> None:
        if subscription.request_id is not None and self._requests.get(subscription.request_id) is subscription:
            del self._requests[subscription.request_id]
        if subscription.order_id is not None and self._orders.get(subscription.order_id) is subscription:
            del self._orders[subscription.order_id]
        for execution_id in [k for k, v in self._executions.items() if v is subscription]:
            del self._executions[execution_id]
        for message_type in subscription.message_types:
            subscribers = self._broadcasts.get(message_type)
            if subscribers and subscription in subscribers:
                subscribers.remove(subscription)
                if not subscribers:
                    del self._broadcasts[message_type]
        if self._order_updates is subscription:
            self._order_updates = None

    async def _send_registered(self, subscription: Subscription, message: Optional[RequestMessage]) -> Subscription:
        if message is None:
            return subscription
        try:
            await self.connection.write_message(message)
        except GatewayError:
            self._release(subscription)
            raise
        return subscription

    async def send_message(self, message: RequestMessage) -> None:
        """Fire and forget; for requests with no reply."""
        self._ensure_ready()
        await self.connection.write_message(message)

    async def send_request(
        self,
        request_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> Subscription:
        await self._wait_for_reconnect()
        self._ensure_ready()
        if request_id in self._requests:
            raise AlreadySubscribed(f"request id {request_id} is already in use")
        subscription = Subscription(
            self, decoder, cancel_message=cancel_message, one_shot=one_shot, request_id=request_id
        )
        self._requests[request_id] = subscription
        return await self._send_registered(subscription, message)

    async def send_order_request(
        self,
        order_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
    ) -> Subscription:
        await self._wait_for_reconnect()
        self._ensure_ready()
        if order_id in self._orders:
            raise AlreadySubscribed(f"order id {order_id} is already in use")
        subscription = Subscription(self, decoder, cancel_message=cancel_message, order_id=order_id)
        self._orders[order_id] = subscription
        return await self._send_registered(subscription, message)

    def subscribe_broadcast(
        self,
        message_types: Iterable[IncomingMessage],
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> Subscription:
        self._ensure_ready()
        types = tuple(message_types)
        subscription = Subscription(
            self, decoder, cancel_message=cancel_message, one_shot=one_shot, message_types=types
        )
        for message_type in types:
            self._broadcasts[message_type].append(subscription)
        return subscription

    async def send_broadcast_request(
        self,
        request_type: OutgoingMessage,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> Subscription:
        await self._wait_for_reconnect()
        try:
            types = BROADCAST_CHANNELS[request_type]
        except KeyError:
            raise ValueError(f"{request_type!r} replies are not broadcast") from None
        subscription = self.subscribe_broadcast(
            types, decoder, cancel_message=cancel_message, one_shot=one_shot
        )
        return await self._send_registered(subscription, message)

    def subscribe_order_updates(self, decoder: Optional[Decoder] = None) -> Subscription:
        self._ensure_ready()
        if self._order_updates is not None:
            raise AlreadySubscribed("an order update stream is already open")
        subscription = Subscription(self, decoder, message_types=tuple(ORDER_UPDATE_MESSAGES))
        self._order_updates = subscription
        return subscription

    def notices(self) -> Subscription:
        """Stream of global errors and warnings as :class:`Notice` objects."""
        return self.subscribe_broadcast((IncomingMessage.ERROR,), decode_error)
