# parsers.py
"""
Readable views of incoming frames, for logs, recordings and debugging.

Every parser is a pure function ``(ResponseMessage, server_version) -> dict``.
Typed decoding for callers lives next to the request that produces the frame;
these views only name the fields.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from ..errors import GatewayError
from . import versions
from .messages import IncomingMessage
from .wire import UNSET_DOUBLE, ResponseMessage

Parser = Callable[[ResponseMessage, int], Dict[str, Any]]


def _reader(message: ResponseMessage) -> ResponseMessage:
    # Work on a private cursor so the caller's message is left untouched.
    view = ResponseMessage(message.fields)
    view.skip()  # message type
    return view


# ---- Connection-scoped ------------------------------------------------------

def parse_error(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    out = {
        'RequestID': m.next_int(),
        'ErrorCode': m.next_int(),
        'ErrorMessage': m.next_string(),
    }
    if versions.is_supported(server_version, versions.ADVANCED_ORDER_REJECT) and m.remaining():
        out['AdvancedOrderRejectJson'] = m.next_string()
    return out


def parse_next_valid_id(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {'OrderID': m.next_int()}


def parse_managed_accounts(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {'Accounts': m.next_string().split(',')}


def parse_current_time(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {'CurrentTime': m.next_date_time()}


def parse_market_data_type(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {'RequestID': m.next_int(), 'MarketDataType': m.next_int()}


def parse_news_bulletin(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {
        'MessageID': m.next_int(),
        'BulletinType': m.next_int(),
        'Message': m.next_string(),
        'OriginatingExchange': m.next_string(),
    }


# ---- Account ----------------------------------------------------------------

def parse_account_summary(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {
        'RequestID': m.next_int(),
        'Account': m.next_string(),
        'Tag': m.next_string(),
        'Value': m.next_string(),
        'Currency': m.next_string(),
    }


def parse_pnl(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    out = {'RequestID': m.next_int(), 'DailyPnL': m.next_double()}
    if versions.is_supported(server_version, versions.UNREALIZED_PNL):
        out['UnrealizedPnL'] = m.next_optional_double(UNSET_DOUBLE)
    if versions.is_supported(server_version, versions.REALIZED_PNL):
        out['RealizedPnL'] = m.next_optional_double(UNSET_DOUBLE)
    return out


def parse_pnl_single(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    out = {
        'RequestID': m.next_int(),
        'Position': m.next_double(),
        'DailyPnL': m.next_double(),
    }
    if versions.is_supported(server_version, versions.UNREALIZED_PNL):
        out['UnrealizedPnL'] = m.next_optional_double(UNSET_DOUBLE)
    if versions.is_supported(server_version, versions.REALIZED_PNL):
        out['RealizedPnL'] = m.next_optional_double(UNSET_DOUBLE)
    out['Value'] = m.next_double()
    return out


# ---- Orders -----------------------------------------------------------------

def parse_order_status(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    out = {
        'OrderID': m.next_int(),
        'Status': m.next_string(),
        'Filled': m.next_double(),
        'Remaining': m.next_double(),
        'AverageFillPrice': m.next_double(),
        'PermID': m.next_long(),
        'ParentID': m.next_int(),
        'LastFillPrice': m.next_double(),
        'ClientID': m.next_int(),
        'WhyHeld': m.next_string(),
    }
    if m.remaining():
        out['MarketCapPrice'] = m.next_double()
    return out


def parse_commission_report(message: ResponseMessage, server_version: int) -> dict:
    m = _reader(message)
    m.skip()  # version
    return {
        'ExecutionID': m.next_string(),
        'Commission': m.next_double(),
        'Currency': m.next_string(),
        'RealizedPnL': m.next_optional_double(UNSET_DOUBLE),
        'Yield': m.next_optional_double(UNSET_DOUBLE),
        'YieldRedemptionDate': m.next_int(),
    }


def parse_end_marker(message: ResponseMessage, server_version: int) -> dict:
    request_id = message.request_id
    return {} if request_id is None else {'RequestID': request_id}


def parse_generic(message: ResponseMessage, server_version: int) -> dict:
    """Fallback view for frames without a dedicated parser."""
    code = message.fields[0] if message.fields else ''
    return {'Type': code, 'Fields': list(message.fields[1:])}


PARSERS: Dict[IncomingMessage, Parser] = {
    IncomingMessage.ERROR: parse_error,
    IncomingMessage.NEXT_VALID_ID: parse_next_valid_id,
    IncomingMessage.MANAGED_ACCOUNTS: parse_managed_accounts,
    IncomingMessage.CURRENT_TIME: parse_current_time,
    IncomingMessage.MARKET_DATA_TYPE: parse_market_data_type,
    IncomingMessage.NEWS_BULLETINS: parse_news_bulletin,
    IncomingMessage.ACCOUNT_SUMMARY: parse_account_summary,
    IncomingMessage.ACCOUNT_SUMMARY_END: parse_end_marker,
    IncomingMessage.PNL: parse_pnl,
    IncomingMessage.PNL_SINGLE: parse_pnl_single,
    IncomingMessage.ORDER_STATUS: parse_order_status,
    IncomingMessage.COMMISSIONS_REPORT: parse_commission_report,
    IncomingMessage.OPEN_ORDER_END: parse_end_marker,
    IncomingMessage.EXECUTION_DATA_END: parse_end_marker,
    IncomingMessage.POSITION_END: parse_end_marker,
    IncomingMessage.CONTRACT_DATA_END: parse_end_marker,
}


def parse_message(message: ResponseMessage, server_version: int) -> dict:
    """Name the fields of ``message``; failures are reported under ``'error'``."""
    message_type = message.message_type
    parser = PARSERS.get(message_type, parse_generic)
    try:
        parsed = parser(message, server_version)
    except (GatewayError, ValueError, OverflowError) as e:
        parsed = parse_generic(message, server_version)
        parsed['error'] = str(e)
    parsed.setdefault('MessageType', message_type.name)
    return parsed
