# client.py
"""
asyncio client for the gateway.

Connects, performs the handshake and runs the dispatcher; request builders
and decoders (see :mod:`gatewaypy.accounts` and :mod:`gatewaypy.news`) use
the ``send_*`` methods to open subscriptions.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import pandas as pd

from .. import accounts, news
from ..errors import NotConnected
from ..protocol import versions
from ..protocol.messages import IncomingMessage, OutgoingMessage
from ..protocol.wire import RequestMessage
from ..transport.bus import MessageBus
from ..transport.connection import AccountInfo, Connection, ConnectionState
from ..transport.ids import ClientIdManager
from ..transport.retry import FibonacciBackoff, reconnect_with_backoff
from ..transport.subscription import Decoder, Subscription
from .config import ClientConfig

logger = logging.getLogger(__name__)


class Client:
    def __init__(self, cfg: ClientConfig):
        self.cfg = cfg
        self._connection: Optional[Connection] = None
        self._bus: Optional[MessageBus] = None
        self._ids = ClientIdManager()

    @classmethod
    async def connect(cls, cfg: ClientConfig) -> "Client":
        """Open a connection and return a ready client."""
        client = cls(cfg)
        await client.open()
        return client

    async def open(self) -> None:
        if self._connection is not None:
            raise NotConnected("client has already been connected once; create a new Client")
        self._connection = Connection(self.cfg)
        await self._handshake(self._connection)
        self._bus = MessageBus(self._connection, self._ids, self.cfg.notice_callback, self._reconnect)
        self._bus.start()

    async def _handshake(self, connection: Connection) -> Connection:
        metadata = await connection.connect()
        self._ids.set_order_id(metadata.account_info.next_order_id or 0)
        logger.info("connected to %s:%s as client %d (server version %d)",
                    self.cfg.host, self.cfg.port, self.cfg.client_id, metadata.server_version)
        return connection

    async def _reconnect(self) -> Optional[Connection]:
        """A fresh, handshaken connection, or ``None`` once the attempts run out."""
        backoff = FibonacciBackoff(self.cfg.reconnect_max_delay, self.cfg.reconnect_delay)
        return await reconnect_with_backoff(
            lambda: self._handshake(Connection(self.cfg)),
            self.cfg.reconnect_attempts,
            backoff,
        )

    async def disconnect(self) -> None:
        if self._bus is not None:
            await self._bus.stop()
        elif self._connection is not None:
            await self._connection.close()

    async def __aenter__(self) -> "Client":
        if self._connection is None:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ---- Connection facts ---------------------------------------------------

    def _require_connection(self) -> Connection:
        # The dispatcher swaps in a new connection after a reconnect.
        if self._bus is not None:
            return self._bus.connection
        if self._connection is None:
            raise NotConnected("client is not connected")
        return self._connection

    def _require_bus(self) -> MessageBus:
        if self._bus is None:
            raise NotConnected("client is not connected")
        return self._bus

    @property
    def client_id(self) -> int:
        return self.cfg.client_id

    @property
    def server_version(self) -> int:
        return self._require_connection().server_version

    @property
    def connection_time(self) -> Optional[pd.Timestamp]:
        return self._require_connection().metadata.connection_time

    @property
    def time_zone(self) -> Optional[str]:
        return self._require_connection().metadata.time_zone

    @property
    def account_info(self) -> AccountInfo:
        return self._require_connection().metadata.account_info

    @property
    def managed_account_list(self) -> List[str]:
        """Accounts reported during the handshake."""
        return self.account_info.accounts

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and self._require_connection().state == ConnectionState.READY

    # ---- Ids and features ---------------------------------------------------

    def next_request_id(self) -> int:
        return self._ids.next_request_id()

    def next_order_id(self) -> int:
        return self._ids.next_order_id()

    def check_feature(self, feature: versions.Feature) -> None:
        """Raise ServerVersionUnsupported if the connected gateway lacks ``feature``."""
        versions.require(self.server_version, feature)

    def supports(self, feature: versions.Feature) -> bool:
        return versions.is_supported(self.server_version, feature)

    # ---- Sending ------------------------------------------------------------

    async def send_message(self, message: RequestMessage) -> None:
        await self._require_bus().send_message(message)

    async def send_request(
        self,
        request_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> Subscription:
        return await self._require_bus().send_request(
            request_id, message, decoder, cancel_message=cancel_message, one_shot=one_shot
        )

    async def send_order_request(
        self,
        order_id: int,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
    ) -> Subscription:
        return await self._require_bus().send_order_request(
            order_id, message, decoder, cancel_message=cancel_message
        )

    async def send_broadcast_request(
        self,
        request_type: OutgoingMessage,
        message: RequestMessage,
        decoder: Optional[Decoder] = None,
        *,
        cancel_message: Optional[RequestMessage] = None,
        one_shot: bool = False,
    ) -> Subscription:
        return await self._require_bus().send_broadcast_request(
            request_type, message, decoder, cancel_message=cancel_message, one_shot=one_shot
        )

    def subscribe_broadcast(
        self,
        message_types: Iterable[IncomingMessage],
        decoder: Optional[Decoder] = None,
    ) -> Subscription:
        return self._require_bus().subscribe_broadcast(message_types, decoder)

    def subscribe_order_updates(self, decoder: Optional[Decoder] = None) -> Subscription:
        return self._require_bus().subscribe_order_updates(decoder)

    def notices(self) -> Subscription:
        return self._require_bus().notices()

    # ---- Sample one-shot and streaming requests -------------------------------

    async def server_time(self) -> pd.Timestamp:
        return await accounts.server_time(self)

    async def managed_accounts(self) -> List[str]:
        return await accounts.managed_accounts(self)

    async def next_valid_order_id(self) -> int:
        return await accounts.next_valid_order_id(self)

    async def pnl(self, account: str, model_code: Optional[str] = None) -> Subscription:
        return await accounts.pnl(self, account, model_code)

    async def news_bulletins(self, all_messages: bool = True) -> Subscription:
        return await news.news_bulletins(self, all_messages)
