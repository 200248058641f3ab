"""Message type codes and the routing tables derived from them."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, FrozenSet, Tuple


class IncomingMessage(IntEnum):
    SHUTDOWN = -2
    NOT_VALID = -1
    TICK_PRICE = 1
    TICK_SIZE = 2
    ORDER_STATUS = 3
    ERROR = 4
    OPEN_ORDER = 5
    ACCOUNT_VALUE = 6
    PORTFOLIO_VALUE = 7
    ACCOUNT_UPDATE_TIME = 8
    NEXT_VALID_ID = 9
    CONTRACT_DATA = 10
    EXECUTION_DATA = 11
    MARKET_DEPTH = 12
    MARKET_DEPTH_L2 = 13
    NEWS_BULLETINS = 14
    MANAGED_ACCOUNTS = 15
    RECEIVE_FA = 16
    HISTORICAL_DATA = 17
    BOND_CONTRACT_DATA = 18
    SCANNER_PARAMETERS = 19
    SCANNER_DATA = 20
    TICK_OPTION_COMPUTATION = 21
    TICK_GENERIC = 45
    TICK_STRING = 46
    TICK_EFP = 47
    CURRENT_TIME = 49
    REAL_TIME_BARS = 50
    FUNDAMENTAL_DATA = 51
    CONTRACT_DATA_END = 52
    OPEN_ORDER_END = 53
    ACCOUNT_DOWNLOAD_END = 54
    EXECUTION_DATA_END = 55
    DELTA_NEUTRAL_VALIDATION = 56
    TICK_SNAPSHOT_END = 57
    MARKET_DATA_TYPE = 58
    COMMISSIONS_REPORT = 59
    POSITION = 61
    POSITION_END = 62
    ACCOUNT_SUMMARY = 63
    ACCOUNT_SUMMARY_END = 64
    VERIFY_MESSAGE_API = 65
    VERIFY_COMPLETED = 66
    DISPLAY_GROUP_LIST = 67
    DISPLAY_GROUP_UPDATED = 68
    VERIFY_AND_AUTH_MESSAGE_API = 69
    VERIFY_AND_AUTH_COMPLETED = 70
    POSITION_MULTI = 71
    POSITION_MULTI_END = 72
    ACCOUNT_UPDATE_MULTI = 73
    ACCOUNT_UPDATE_MULTI_END = 74
    SECURITY_DEFINITION_OPTION_PARAMETER = 75
    SECURITY_DEFINITION_OPTION_PARAMETER_END = 76
    SOFT_DOLLAR_TIER = 77
    FAMILY_CODES = 78
    SYMBOL_SAMPLES = 79
    MKT_DEPTH_EXCHANGES = 80
    TICK_REQ_PARAMS = 81
    SMART_COMPONENTS = 82
    NEWS_ARTICLE = 83
    TICK_NEWS = 84
    NEWS_PROVIDERS = 85
    HISTORICAL_NEWS = 86
    HISTORICAL_NEWS_END = 87
    HEAD_TIMESTAMP = 88
    HISTOGRAM_DATA = 89
    HISTORICAL_DATA_UPDATE = 90
    REROUTE_MKT_DATA_REQ = 91
    REROUTE_MKT_DEPTH_REQ = 92
    MARKET_RULE = 93
    PNL = 94
    PNL_SINGLE = 95
    HISTORICAL_TICK = 96
    HISTORICAL_TICK_BID_ASK = 97
    HISTORICAL_TICK_LAST = 98
    TICK_BY_TICK = 99
    ORDER_BOUND = 100
    COMPLETED_ORDER = 101
    COMPLETED_ORDERS_END = 102
    REPLACE_FA_END = 103
    WSH_META_DATA = 104
    WSH_EVENT_DATA = 105
    HISTORICAL_SCHEDULE = 106
    USER_INFO = 107

    @classmethod
    def from_code(cls, code: int) -> "IncomingMessage":
        try:
            return cls(code)
        except ValueError:
            return cls.NOT_VALID


class OutgoingMessage(IntEnum):
    REQUEST_MARKET_DATA = 1
    CANCEL_MARKET_DATA = 2
    PLACE_ORDER = 3
    CANCEL_ORDER = 4
    REQUEST_OPEN_ORDERS = 5
    REQUEST_ACCOUNT_DATA = 6
    REQUEST_EXECUTIONS = 7
    REQUEST_IDS = 8
    REQUEST_CONTRACT_DATA = 9
    REQUEST_MARKET_DEPTH = 10
    CANCEL_MARKET_DEPTH = 11
    REQUEST_NEWS_BULLETINS = 12
    CANCEL_NEWS_BULLETIN = 13
    CHANGE_SERVER_LOG = 14
    REQUEST_AUTO_OPEN_ORDERS = 15
    REQUEST_ALL_OPEN_ORDERS = 16
    REQUEST_MANAGED_ACCOUNTS = 17
    REQUEST_FA = 18
    REPLACE_FA = 19
    REQUEST_HISTORICAL_DATA = 20
    EXERCISE_OPTIONS = 21
    REQUEST_SCANNER_SUBSCRIPTION = 22
    CANCEL_SCANNER_SUBSCRIPTION = 23
    REQUEST_SCANNER_PARAMETERS = 24
    CANCEL_HISTORICAL_DATA = 25
    REQUEST_CURRENT_TIME = 49
    REQUEST_REAL_TIME_BARS = 50
    CANCEL_REAL_TIME_BARS = 51
    REQUEST_FUNDAMENTAL_DATA = 52
    CANCEL_FUNDAMENTAL_DATA = 53
    REQUEST_CALC_IMPLIED_VOLATILITY = 54
    REQUEST_CALC_OPTION_PRICE = 55
    CANCEL_IMPLIED_VOLATILITY = 56
    CANCEL_OPTION_PRICE = 57
    REQUEST_GLOBAL_CANCEL = 58
    REQUEST_MARKET_DATA_TYPE = 59
    REQUEST_POSITIONS = 61
    REQUEST_ACCOUNT_SUMMARY = 62
    CANCEL_ACCOUNT_SUMMARY = 63
    CANCEL_POSITIONS = 64
    VERIFY_REQUEST = 65
    VERIFY_MESSAGE = 66
    QUERY_DISPLAY_GROUPS = 67
    SUBSCRIBE_TO_GROUP_EVENTS = 68
    UPDATE_DISPLAY_GROUP = 69
    UNSUBSCRIBE_FROM_GROUP_EVENTS = 70
    START_API = 71
    VERIFY_AND_AUTH_REQUEST = 72
    VERIFY_AND_AUTH_MESSAGE = 73
    REQUEST_POSITIONS_MULTI = 74
    CANCEL_POSITIONS_MULTI = 75
    REQUEST_ACCOUNT_UPDATES_MULTI = 76
    CANCEL_ACCOUNT_UPDATES_MULTI = 77
    REQUEST_SECURITY_DEFINITION_OPTIONAL_PARAMETERS = 78
    REQUEST_SOFT_DOLLAR_TIERS = 79
    REQUEST_FAMILY_CODES = 80
    REQUEST_MATCHING_SYMBOLS = 81
    REQUEST_MKT_DEPTH_EXCHANGES = 82
    REQUEST_SMART_COMPONENTS = 83
    REQUEST_NEWS_ARTICLE = 84
    REQUEST_NEWS_PROVIDERS = 85
    REQUEST_HISTORICAL_NEWS = 86
    REQUEST_HEAD_TIMESTAMP = 87
    REQUEST_HISTOGRAM_DATA = 88
    CANCEL_HISTOGRAM_DATA = 89
    CANCEL_HEAD_TIMESTAMP = 90
    REQUEST_MARKET_RULE = 91
    REQUEST_PNL = 92
    CANCEL_PNL = 93
    REQUEST_PNL_SINGLE = 94
    CANCEL_PNL_SINGLE = 95
    REQUEST_HISTORICAL_TICKS = 96
    REQUEST_TICK_BY_TICK_DATA = 97
    CANCEL_TICK_BY_TICK_DATA = 98
    REQUEST_COMPLETED_ORDERS = 99
    REQUEST_WSH_META_DATA = 100
    CANCEL_WSH_META_DATA = 101
    REQUEST_WSH_EVENT_DATA = 102
    CANCEL_WSH_EVENT_DATA = 103
    REQUEST_USER_INFO = 104


_In = IncomingMessage

# Field offset of the request id, per incoming message type.
REQUEST_ID_INDEX: Dict[IncomingMessage, int] = {
    _In.ACCOUNT_SUMMARY: 2,
    _In.ACCOUNT_SUMMARY_END: 2,
    _In.ACCOUNT_UPDATE_MULTI: 2,
    _In.ACCOUNT_UPDATE_MULTI_END: 2,
    _In.CONTRACT_DATA: 1,
    _In.CONTRACT_DATA_END: 2,
    _In.ERROR: 2,
    _In.EXECUTION_DATA: 1,
    _In.EXECUTION_DATA_END: 2,
    _In.HEAD_TIMESTAMP: 1,
    _In.HISTOGRAM_DATA: 1,
    _In.HISTORICAL_DATA: 1,
    _In.HISTORICAL_NEWS: 1,
    _In.HISTORICAL_NEWS_END: 1,
    _In.HISTORICAL_SCHEDULE: 1,
    _In.HISTORICAL_TICK: 1,
    _In.HISTORICAL_TICK_BID_ASK: 1,
    _In.HISTORICAL_TICK_LAST: 1,
    _In.MARKET_DEPTH: 2,
    _In.MARKET_DEPTH_L2: 2,
    _In.NEWS_ARTICLE: 1,
    _In.OPEN_ORDER: 1,
    _In.PNL: 1,
    _In.PNL_SINGLE: 1,
    _In.POSITION_MULTI: 2,
    _In.POSITION_MULTI_END: 2,
    _In.REAL_TIME_BARS: 2,
    _In.SCANNER_DATA: 2,
    _In.SECURITY_DEFINITION_OPTION_PARAMETER: 1,
    _In.SECURITY_DEFINITION_OPTION_PARAMETER_END: 1,
    _In.SYMBOL_SAMPLES: 1,
    _In.TICK_BY_TICK: 1,
    _In.TICK_EFP: 2,
    _In.TICK_GENERIC: 2,
    _In.TICK_NEWS: 1,
    _In.TICK_OPTION_COMPUTATION: 1,
    _In.TICK_PRICE: 2,
    _In.TICK_REQ_PARAMS: 1,
    _In.TICK_SIZE: 2,
    _In.TICK_SNAPSHOT_END: 2,
    _In.TICK_STRING: 2,
    _In.WSH_EVENT_DATA: 1,
    _In.WSH_META_DATA: 1,
}

# Field offset of the order id for order-scoped messages.
ORDER_ID_INDEX: Dict[IncomingMessage, int] = {
    _In.OPEN_ORDER: 1,
    _In.ORDER_STATUS: 1,
    _In.EXECUTION_DATA: 2,
    _In.EXECUTION_DATA_END: 2,
}

# Field offset of the execution id, used to pair commission reports with executions.
EXECUTION_ID_INDEX: Dict[IncomingMessage, int] = {
    _In.EXECUTION_DATA: 14,
    _In.COMMISSIONS_REPORT: 2,
}

END_OF_STREAM: FrozenSet[IncomingMessage] = frozenset(
    (
        _In.ACCOUNT_DOWNLOAD_END,
        _In.ACCOUNT_SUMMARY_END,
        _In.ACCOUNT_UPDATE_MULTI_END,
        _In.COMPLETED_ORDERS_END,
        _In.CONTRACT_DATA_END,
        _In.EXECUTION_DATA_END,
        _In.HISTORICAL_NEWS_END,
        _In.OPEN_ORDER_END,
        _In.POSITION_END,
        _In.POSITION_MULTI_END,
        _In.SECURITY_DEFINITION_OPTION_PARAMETER_END,
        _In.TICK_SNAPSHOT_END,
    )
)

ORDER_UPDATE_MESSAGES: FrozenSet[IncomingMessage] = frozenset(
    (
        _In.ORDER_STATUS,
        _In.OPEN_ORDER,
        _In.EXECUTION_DATA,
        _In.COMMISSIONS_REPORT,
    )
)

_OPEN_ORDER_REPLIES = (_In.OPEN_ORDER, _In.ORDER_STATUS, _In.OPEN_ORDER_END)

# Requests whose replies carry no request id, and the message types they produce.
BROADCAST_CHANNELS: Dict[OutgoingMessage, Tuple[IncomingMessage, ...]] = {
    OutgoingMessage.REQUEST_IDS: (_In.NEXT_VALID_ID,),
    OutgoingMessage.REQUEST_FAMILY_CODES: (_In.FAMILY_CODES,),
    OutgoingMessage.REQUEST_MARKET_RULE: (_In.MARKET_RULE,),
    OutgoingMessage.REQUEST_POSITIONS: (_In.POSITION, _In.POSITION_END),
    OutgoingMessage.REQUEST_OPEN_ORDERS: _OPEN_ORDER_REPLIES,
    OutgoingMessage.REQUEST_ALL_OPEN_ORDERS: _OPEN_ORDER_REPLIES,
    OutgoingMessage.REQUEST_AUTO_OPEN_ORDERS: _OPEN_ORDER_REPLIES,
    OutgoingMessage.REQUEST_COMPLETED_ORDERS: (_In.COMPLETED_ORDER, _In.COMPLETED_ORDERS_END),
    OutgoingMessage.REQUEST_MANAGED_ACCOUNTS: (_In.MANAGED_ACCOUNTS,),
    OutgoingMessage.REQUEST_ACCOUNT_DATA: (
        _In.ACCOUNT_VALUE,
        _In.PORTFOLIO_VALUE,
        _In.ACCOUNT_DOWNLOAD_END,
        _In.ACCOUNT_UPDATE_TIME,
    ),
    OutgoingMessage.REQUEST_MARKET_DATA_TYPE: (_In.MARKET_DATA_TYPE,),
    OutgoingMessage.REQUEST_MKT_DEPTH_EXCHANGES: (_In.MKT_DEPTH_EXCHANGES,),
    OutgoingMessage.REQUEST_CURRENT_TIME: (_In.CURRENT_TIME,),
    OutgoingMessage.REQUEST_NEWS_PROVIDERS: (_In.NEWS_PROVIDERS,),
    OutgoingMessage.REQUEST_NEWS_BULLETINS: (_In.NEWS_BULLETINS,),
    OutgoingMessage.REQUEST_SCANNER_PARAMETERS: (_In.SCANNER_PARAMETERS,),
}

del _In
