# connection.py
"""
TCP transport and the opening handshake with the gateway.

Handshake:
    1. ``API\\0`` followed by the length-prefixed version window ``v<min>..<max>``
    2. gateway replies with its server version and connection time
    3. start API (client id, and an empty optional-capabilities field when supported)
    4. read until both NextValidId and ManagedAccounts have arrived
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import pandas as pd

from ..errors import ConnectionFailed, ConnectionReset, DecodeError, NotConnected
from ..protocol import versions
from ..protocol.messages import IncomingMessage, OutgoingMessage
from ..protocol.timezone import parse_connection_time
from ..protocol.wire import RequestMessage, ResponseMessage, encode_length, read_frame
from .recorder import NullRecorder

if TYPE_CHECKING:
    from ..client.config import ClientConfig

logger = logging.getLogger(__name__)

MAGIC_PREFIX = b"API\0"
START_API_VERSION = 2


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class AccountInfo:
    next_order_id: Optional[int] = None
    managed_accounts: Optional[str] = None

    @property
    def accounts(self) -> List[str]:
        return [] if self.managed_accounts is None else self.managed_accounts.split(",")

    @property
    def complete(self) -> bool:
        return self.next_order_id is not None and self.managed_accounts is not None


@dataclass
class ConnectionMetadata:
    client_id: int
    server_version: int = 0
    server_time: str = ""
    connection_time: Optional[pd.Timestamp] = None
    time_zone: Optional[str] = None
    account_info: AccountInfo = field(default_factory=AccountInfo)


def build_start_api(client_id: int, server_version: int, optional_capabilities: str = "") -> RequestMessage:
    message = RequestMessage([OutgoingMessage.START_API, START_API_VERSION, client_id])
    if versions.is_supported(server_version, versions.OPTIONAL_CAPABILITIES):
        message.push(optional_capabilities)
    return message


class Connection:
    """One gateway socket. Reads belong to whoever drives :meth:`read_message`
    (the handshake, then the dispatcher); writes are serialized by a lock.
    """

    def __init__(self, config: "ClientConfig") -> None:
        self.config = config
        self.recorder = config.recorder if config.recorder is not None else NullRecorder()
        self.state = ConnectionState.DISCONNECTED
        self.metadata = ConnectionMetadata(client_id=config.client_id)
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock: Optional[asyncio.Lock] = None

    @property
    def server_version(self) -> int:
        return self.metadata.server_version

    @property
    def is_ready(self) -> bool:
        return self.state == ConnectionState.READY

    # ---- Handshake ----------------------------------------------------------

    async def connect(self) -> ConnectionMetadata:
        if self.state != ConnectionState.DISCONNECTED:
            raise ConnectionFailed(f"cannot connect from state {self.state.value}")
        self.state = ConnectionState.HANDSHAKING
        self._write_lock = asyncio.Lock()
        cfg = self.config
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(cfg.host, cfg.port), cfg.connect_timeout
            )
            await asyncio.wait_for(self._handshake(), cfg.handshake_timeout)
        except (ConnectionFailed, DecodeError):
            await self.close()
            raise
        except (OSError, asyncio.TimeoutError, asyncio.IncompleteReadError, ConnectionReset) as e:
            await self.close()
            raise ConnectionFailed(f"handshake with {cfg.host}:{cfg.port} failed: {e!r}") from e
        except BaseException:
            await self.close()
            raise
        self.state = ConnectionState.READY
        logger.debug("connected to %s:%s, server version %d",
                     cfg.host, cfg.port, self.metadata.server_version)
        return self.metadata

    async def _handshake(self) -> None:
        cfg = self.config
        window = versions.version_range(cfg.min_version, cfg.max_version)
        logger.debug("-> handshake %s", window)
        await self._write(MAGIC_PREFIX + encode_length(window))

        reply = await self.read_message()
        server_version = reply.next_int()
        server_time = reply.next_string()
        if server_version < cfg.min_version:
            raise ConnectionFailed(
                f"server version {server_version} is below the minimum {cfg.min_version}"
            )
        self.metadata.server_version = server_version
        self.metadata.server_time = server_time
        self.metadata.connection_time, self.metadata.time_zone = parse_connection_time(server_time)
        logger.debug("<- server version %d, time %r", server_version, server_time)

        await self.write_message(build_start_api(cfg.client_id, server_version))
        await self._receive_account_info()

    async def _receive_account_info(self) -> None:
        info = self.metadata.account_info
        while not info.complete:
            message = await self.read_message()
            message_type = message.message_type
            if message_type == IncomingMessage.NEXT_VALID_ID:
                message.skip(2)
                info.next_order_id = message.next_int()
            elif message_type == IncomingMessage.MANAGED_ACCOUNTS:
                message.skip(2)
                info.managed_accounts = message.next_string()
            elif message_type == IncomingMessage.ERROR:
                logger.error("error during handshake: %s", message.encode_simple())
            elif self.config.startup_callback is not None:
                try:
                    self.config.startup_callback(message)
                except Exception:
                    logger.exception("startup callback raised on %s", message.encode_simple())
            else:
                logger.warning("message lost during handshake: %s", message.encode_simple())

    # ---- I/O ----------------------------------------------------------------

    async def read_message(self) -> ResponseMessage:
        if self._reader is None:
            raise NotConnected("connection is not open")
        data = await read_frame(self._reader)
        message = ResponseMessage.decode(data)
        self.recorder.record_response(message)
        logger.debug("<- %s", message.encode_simple())
        return message

    async def write_message(self, message: RequestMessage) -> None:
        if self.state == ConnectionState.CLOSED:
            raise ConnectionReset()
        if self._writer is None:
            raise NotConnected("connection is not open")
        self.recorder.record_request(message)
        logger.debug("-> %s", message.encode_simple())
        await self._write(message.to_frame())

    async def _write(self, data: bytes) -> None:
        assert self._writer is not None and self._write_lock is not None
        async with self._write_lock:
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (ConnectionError, OSError) as e:
                raise ConnectionReset(f"write failed: {e}") from e

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    async def close(self) -> None:
        self.state = ConnectionState.CLOSED
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("error closing transport: %s", e)
