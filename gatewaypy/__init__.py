"""
gatewaypy - A Python client for a brokerage gateway's socket API.

This package provides the machinery every gateway request rides on:
- Length-prefixed, NUL-delimited wire codec
- Handshake and server-version negotiation
- Dispatcher multiplexing request-scoped and broadcast subscriptions
- Thread-safe request and order ids, retry of idempotent calls
- asyncio client with a blocking facade
"""

__version__ = "0.1.0"

from .accounts import PnL
from .client import BlockingClient, BlockingSubscription, Client, ClientConfig
from .errors import (
    AlreadySubscribed,
    Cancelled,
    ConnectionFailed,
    ConnectionReset,
    DecodeError,
    EndOfStream,
    GatewayError,
    Notice,
    NotConnected,
    ServerError,
    ServerVersionUnsupported,
    UnexpectedResponse,
)
from .news import NewsBulletin
from .protocol import (
    Feature,
    IncomingMessage,
    OutgoingMessage,
    RequestMessage,
    ResponseMessage,
)
from .transport import (
    DEFAULT_MAX_RETRIES,
    FileRecorder,
    NullRecorder,
    Subscription,
    SubscriptionState,
    retry_on_connection_reset,
)

__all__ = [
    # Version info
    "__version__",

    # Clients
    "Client",
    "ClientConfig",
    "BlockingClient",
    "BlockingSubscription",
    "Subscription",
    "SubscriptionState",

    # Protocol
    "Feature",
    "IncomingMessage",
    "OutgoingMessage",
    "RequestMessage",
    "ResponseMessage",

    # Recording and retry
    "FileRecorder",
    "NullRecorder",
    "DEFAULT_MAX_RETRIES",
    "retry_on_connection_reset",

    # Sample requests
    "PnL",
    "NewsBulletin",

    # Errors
    "GatewayError",
    "ConnectionFailed",
    "ConnectionReset",
    "NotConnected",
    "Cancelled",
    "AlreadySubscribed",
    "EndOfStream",
    "ServerVersionUnsupported",
    "UnexpectedResponse",
    "DecodeError",
    "ServerError",
    "Notice",
]
