from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import Notice
from ..protocol.versions import MAX_CLIENT_VERSION, MIN_CLIENT_VERSION
from ..protocol.wire import ResponseMessage
from ..transport.recorder import MessageRecorder, NullRecorder

DEFAULT_PORT = 4002


@dataclass
class ClientConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    client_id: int = 0
    min_version: int = MIN_CLIENT_VERSION
    max_version: int = MAX_CLIENT_VERSION
    connect_timeout: float = 10.0    # seconds
    handshake_timeout: float = 10.0  # seconds
    # After a lost connection, up to reconnect_attempts handshakes with Fibonacci
    # backoff (reconnect_delay, 2x, 3x, 5x, ... capped at reconnect_max_delay).
    # 0 disables reconnection.
    reconnect_attempts: int = 20
    reconnect_delay: float = 1.0        # seconds
    reconnect_max_delay: float = 30.0   # seconds
    recorder: MessageRecorder = field(default_factory=NullRecorder)
    # Receives frames other than NextValidId/ManagedAccounts/Error seen during the handshake.
    startup_callback: Optional[Callable[[ResponseMessage], None]] = None
    # Receives errors and warnings not tied to an open request.
    notice_callback: Optional[Callable[[Notice], None]] = None

    @classmethod
    def from_address(cls, address: str, client_id: int = 0, **kwargs) -> "ClientConfig":
        """Build a config from ``"host:port"``."""
        host, sep, port = address.rpartition(":")
        if not sep or not host:
            raise ValueError(f"expected host:port, got {address!r}")
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"invalid port in {address!r}") from None
        return cls(host=host, port=port_number, client_id=client_id, **kwargs)
