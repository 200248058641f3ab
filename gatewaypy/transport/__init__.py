"""
Transport layer: connection and handshake, dispatcher, subscriptions, ids
and retry policy.
"""

from .bus import MessageBus
from .connection import AccountInfo, Connection, ConnectionMetadata, ConnectionState
from .ids import ClientIdManager, IdGenerator
from .recorder import FileRecorder, MessageRecorder, NullRecorder
from .retry import (
    DEFAULT_MAX_RETRIES,
    FibonacciBackoff,
    reconnect_with_backoff,
    retry_on_connection_reset,
)
from .subscription import Subscription, SubscriptionState

__all__ = [
    "MessageBus",
    "Connection",
    "ConnectionMetadata",
    "ConnectionState",
    "AccountInfo",
    "ClientIdManager",
    "IdGenerator",
    "MessageRecorder",
    "NullRecorder",
    "FileRecorder",
    "DEFAULT_MAX_RETRIES",
    "retry_on_connection_reset",
    "FibonacciBackoff",
    "reconnect_with_backoff",
    "Subscription",
    "SubscriptionState",
]
