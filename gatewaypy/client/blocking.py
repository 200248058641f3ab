# blocking.py
"""
Synchronous facade over :class:`Client`.

A private event loop runs in a daemon thread; each blocking call submits a
coroutine to it and waits for the result.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Iterable, Iterator, List, Optional, TypeVar

import pandas as pd

from ..errors import NotConnected
from ..protocol import versions
from ..protocol.messages import IncomingMessage, OutgoingMessage
from ..protocol.wire import RequestMessage
from ..transport.connection import AccountInfo
from ..transport.subscription import Decoder, Subscription, SubscriptionState
from .client import Client
from .config import ClientConfig

T = TypeVar("T")


class _LoopThread:
    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="gatewaypy-loop", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def call(self, func, *args) -> Any:
        async def _call():
            return func(*args)
        return self.run(_call())

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join()
        self.loop.close()


class BlockingSubscription:
    """Blocking view of a :class:`Subscription`; iterate it or call :meth:`next`."""

    def __init__(self, subscription: Subscription, runner: _LoopThread) -> None:
        self._subscription = subscription
        self._runner = runner

    @property
    def state(self) -> SubscriptionState:
        return self._subscription.state

    @property
    def request_id(self) -> Optional[int]:
        return self._subscription.request_id

    def next(self, timeout: Optional[float] = None) -> Any:
        """Next item or ``None`` at end of stream; ``asyncio.TimeoutError`` on timeout."""
        return self._runner.run(self._subscription.next(timeout))

    def result(self, timeout: Optional[float] = None) -> Any:
        return self._runner.run(self._subscription.result(timeout))

    def collect(self, timeout: Optional[float] = None) -> List[Any]:
        return self._runner.run(self._subscription.collect(timeout))

    def cancel(self) -> None:
        self._runner.run(self._subscription.cancel())

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self.next()
            if item is None:
                return
            yield item

    def __enter__(self) -> "BlockingSubscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class BlockingClient:
    """Synchronous wrapper around Client that handles asyncio automatically."""

    def __init__(self, cfg: ClientConfig) -> None:
        self._runner = _LoopThread()
        self._client = Client(cfg)

    @classmethod
    def connect(cls, cfg: ClientConfig) -> "BlockingClient":
        client = cls(cfg)
        try:
            client._runner.run(client._client.open())
        except BaseException:
            client._runner.stop()
            raise
        return client

    def disconnect(self) -> None:
        if self._runner.loop.is_closed():
            return
        try:
            self._runner.run(self._client.disconnect())
        finally:
            self._runner.stop()

    def __enter__(self) -> "BlockingClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def _wrap(self, subscription: Subscription) -> BlockingSubscription:
        return BlockingSubscription(subscription, self._runner)

    def _ensure_open(self) -> None:
        if self._runner.loop.is_closed():
            raise NotConnected("client has been disconnected")

    # ---- Connection facts ---------------------------------------------------

    @property
    def server_version(self) -> int:
        return self._client.server_version

    @property
    def connection_time(self) -> Optional[pd.Timestamp]:
        return self._client.connection_time

    @property
    def time_zone(self) -> Optional[str]:
        return self._client.time_zone

    @property
    def account_info(self) -> AccountInfo:
        return self._client.account_info

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    def next_request_id(self) -> int:
        return self._client.next_request_id()

    def next_order_id(self) -> int:
        return self._client.next_order_id()

    def check_feature(self, feature: versions.Feature) -> None:
        self._client.check_feature(feature)

    # ---- Sending ------------------------------------------------------------

    def send_message(self, message: RequestMessage) -> None:
        self._ensure_open()
        self._runner.run(self._client.send_message(message))

    def send_request(
        self,
        request_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.run(self._client.send_request(
            request_id, message, decoder, cancel_message=cancel_message, one_shot=one_shot
        )))

    def send_order_request(
        self,
        order_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
    ) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.run(self._client.send_order_request(
            order_id, message, decoder, cancel_message=cancel_message
        )))

    def send_broadcast_request(
        self,
        request_type: OutgoingMessage,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.run(self._client.send_broadcast_request(
            request_type, message, decoder, cancel_message=cancel_message, one_shot=one_shot
        )))

    def subscribe_broadcast(
        self,
        message_types: Iterable[IncomingMessage],
        decoder: Optional[Decoder] = None,
    ) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.call(self._client.subscribe_broadcast, tuple(message_types), decoder))

    def subscribe_order_updates(self, decoder: Optional[Decoder] = None) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.call(self._client.subscribe_order_updates, decoder))

    def notices(self) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.call(self._client.notices))

    # ---- Sample requests ----------------------------------------------------

    def server_time(self) -> pd.Timestamp:
        self._ensure_open()
        return self._runner.run(self._client.server_time())

    def managed_accounts(self) -> List[str]:
        self._ensure_open()
        return self._runner.run(self._client.managed_accounts())

    def next_valid_order_id(self) -> int:
        self._ensure_open()
        return self._runner.run(self._client.next_valid_order_id())

    def pnl(self, account: str, model_code: Optional[str] = None) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.run(self._client.pnl(account, model_code)))

    def news_bulletins(self, all_messages: bool = True) -> BlockingSubscription:
        self._ensure_open()
        return self._wrap(self._runner.run(self._client.news_bulletins(all_messages)))
