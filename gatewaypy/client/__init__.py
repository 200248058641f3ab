"""
Gateway clients.

``Client`` is the asyncio client; ``BlockingClient`` wraps it for callers
that do not run an event loop.
"""

from .blocking import BlockingClient, BlockingSubscription
from .client import Client
from .config import ClientConfig

__all__ = [
    "Client",
    "ClientConfig",
    "BlockingClient",
    "BlockingSubscription",
]
