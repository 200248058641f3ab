# news.py
"""News bulletins: a connection-wide broadcast stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import UnexpectedResponse
from .protocol.messages import IncomingMessage, OutgoingMessage
from .protocol.wire import RequestMessage, ResponseMessage
from .transport.subscription import Subscription

if TYPE_CHECKING:
    from .client.client import Client

VERSION_1 = 1


@dataclass
class NewsBulletin:
    message_id: int
    message_type: int
    message: str
    exchange: str


def encode_request_news_bulletins(all_messages: bool) -> RequestMessage:
    return RequestMessage([OutgoingMessage.REQUEST_NEWS_BULLETINS, VERSION_1, all_messages])


def encode_cancel_news_bulletins() -> RequestMessage:
    return RequestMessage([OutgoingMessage.CANCEL_NEWS_BULLETIN, VERSION_1])


def decode_news_bulletin(message: ResponseMessage, server_version: int) -> NewsBulletin:
    if message.message_type != IncomingMessage.NEWS_BULLETINS:
        raise UnexpectedResponse(message.encode_simple())
    message.skip(2)
    return NewsBulletin(
        message_id=message.next_int(),
        message_type=message.next_int(),
        message=message.next_string(),
        exchange=message.next_string(),
    )


async def news_bulletins(client: "Client", all_messages: bool = True) -> Subscription:
    """Stream of :class:`NewsBulletin`; with ``all_messages`` the day's earlier
    bulletins are replayed first. Cancelling sends CancelNewsBulletin.
    """
    return await client.send_broadcast_request(
        OutgoingMessage.REQUEST_NEWS_BULLETINS,
        encode_request_news_bulletins(all_messages),
        decode_news_bulletin,
        cancel_message=encode_cancel_news_bulletins(),
    )
