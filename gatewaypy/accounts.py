# accounts.py
"""
Account-level requests: server time, managed accounts, next valid order id
and the daily PnL stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import pandas as pd

from .protocol import versions
from .protocol.messages import IncomingMessage, OutgoingMessage
from .protocol.wire import UNSET_DOUBLE, RequestMessage, ResponseMessage
from .errors import UnexpectedResponse
from .transport.retry import retry_on_connection_reset
from .transport.subscription import Subscription

if TYPE_CHECKING:
    from .client.client import Client

VERSION_1 = 1


@dataclass
class PnL:
    daily_pnl: float
    unrealized_pnl: Optional[float] = None
    realized_pnl: Optional[float] = None


# -----------------------------------------------------------------------------
# Encoders
# -----------------------------------------------------------------------------

def encode_request_current_time() -> RequestMessage:
    return RequestMessage([OutgoingMessage.REQUEST_CURRENT_TIME, VERSION_1])


def encode_request_managed_accounts() -> RequestMessage:
    return RequestMessage([OutgoingMessage.REQUEST_MANAGED_ACCOUNTS, VERSION_1])


def encode_request_ids() -> RequestMessage:
    # The gateway ignores the number of ids requested.
    return RequestMessage([OutgoingMessage.REQUEST_IDS, VERSION_1, 0])


def encode_request_pnl(request_id: int, account: str, model_code: Optional[str] = None) -> RequestMessage:
    return RequestMessage([OutgoingMessage.REQUEST_PNL, request_id, account, model_code])


def encode_cancel_pnl(request_id: int) -> RequestMessage:
    return RequestMessage([OutgoingMessage.CANCEL_PNL, request_id])


# -----------------------------------------------------------------------------
# Decoders
# -----------------------------------------------------------------------------

def _expect(message: ResponseMessage, message_type: IncomingMessage) -> None:
    if message.message_type != message_type:
        raise UnexpectedResponse(message.encode_simple())


def decode_current_time(message: ResponseMessage, server_version: int) -> pd.Timestamp:
    _expect(message, IncomingMessage.CURRENT_TIME)
    message.skip(2)
    return message.next_date_time()


def decode_managed_accounts(message: ResponseMessage, server_version: int) -> List[str]:
    _expect(message, IncomingMessage.MANAGED_ACCOUNTS)
    message.skip(2)
    return message.next_string().split(",")


def decode_next_valid_id(message: ResponseMessage, server_version: int) -> int:
    _expect(message, IncomingMessage.NEXT_VALID_ID)
    message.skip(2)
    return message.next_int()


def decode_pnl(message: ResponseMessage, server_version: int) -> PnL:
    """``94|request_id|daily|unrealized|realized``; the last two are version gated."""
    _expect(message, IncomingMessage.PNL)
    message.skip(2)
    pnl = PnL(daily_pnl=message.next_double())
    if versions.is_supported(server_version, versions.UNREALIZED_PNL):
        pnl.unrealized_pnl = message.next_optional_double(UNSET_DOUBLE)
    if versions.is_supported(server_version, versions.REALIZED_PNL):
        pnl.realized_pnl = message.next_optional_double(UNSET_DOUBLE)
    return pnl


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------

async def server_time(client: "Client", timeout: Optional[float] = None) -> pd.Timestamp:
    """The gateway's current time, in UTC."""

    async def attempt() -> pd.Timestamp:
        subscription = await client.send_broadcast_request(
            OutgoingMessage.REQUEST_CURRENT_TIME,
            encode_request_current_time(),
            decode_current_time,
            one_shot=True,
        )
        return await subscription.result(timeout)

    return await retry_on_connection_reset(attempt)


async def managed_accounts(client: "Client", timeout: Optional[float] = None) -> List[str]:
    """Accounts this login can trade; an empty list if the gateway sends nothing."""

    async def attempt() -> List[str]:
        subscription = await client.send_broadcast_request(
            OutgoingMessage.REQUEST_MANAGED_ACCOUNTS,
            encode_request_managed_accounts(),
            decode_managed_accounts,
            one_shot=True,
        )
        accounts = await subscription.next(timeout)
        return [] if accounts is None else accounts

    return await retry_on_connection_reset(attempt)


async def next_valid_order_id(client: "Client", timeout: Optional[float] = None) -> int:
    """Ask the gateway for a fresh order id; the client's order counter follows it."""
    subscription = await client.send_broadcast_request(
        OutgoingMessage.REQUEST_IDS,
        encode_request_ids(),
        decode_next_valid_id,
        one_shot=True,
    )
    return await subscription.result(timeout)


async def pnl(client: "Client", account: str, model_code: Optional[str] = None) -> Subscription:
    """Stream of :class:`PnL` updates for ``account``; cancelling sends CancelPnL."""
    client.check_feature(versions.PNL)
    request_id = client.next_request_id()
    return await client.send_request(
        request_id,
        encode_request_pnl(request_id, account, model_code),
        decode_pnl,
        cancel_message=encode_cancel_pnl(request_id),
    )
