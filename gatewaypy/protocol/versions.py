"""
Minimum server versions for version-gated protocol features.

Encoders and decoders consult this table before writing or reading any
field that a gateway only understands from a given release on.
"""

from __future__ import annotations

from typing import Dict, NamedTuple

from ..errors import ServerVersionUnsupported

MIN_CLIENT_VERSION = 100
MAX_CLIENT_VERSION = 178


class Feature(NamedTuple):
    name: str
    min_version: int

    def __str__(self) -> str:
        return self.name


REAL_TIME_BARS = Feature("REAL_TIME_BARS", 34)
SCALE_ORDERS = Feature("SCALE_ORDERS", 35)
SNAPSHOT_MKT_DATA = Feature("SNAPSHOT_MKT_DATA", 35)
WHAT_IF_ORDERS = Feature("WHAT_IF_ORDERS", 36)
CONTRACT_CONID = Feature("CONTRACT_CONID", 37)
FUNDAMENTAL_DATA = Feature("FUNDAMENTAL_DATA", 40)
DELTA_NEUTRAL = Feature("DELTA_NEUTRAL", 40)
ALGO_ORDERS = Feature("ALGO_ORDERS", 41)
EXECUTION_DATA_CHAIN = Feature("EXECUTION_DATA_CHAIN", 42)
SEC_ID_TYPE = Feature("SEC_ID_TYPE", 45)
REQ_CALC_IMPLIED_VOLAT = Feature("REQ_CALC_IMPLIED_VOLAT", 49)
REQ_CALC_OPTION_PRICE = Feature("REQ_CALC_OPTION_PRICE", 50)
REQ_GLOBAL_CANCEL = Feature("REQ_GLOBAL_CANCEL", 53)
REQ_MARKET_DATA_TYPE = Feature("REQ_MARKET_DATA_TYPE", 55)
POSITIONS = Feature("POSITIONS", 67)
ACCOUNT_SUMMARY = Feature("ACCOUNT_SUMMARY", 67)
TRADING_CLASS = Feature("TRADING_CLASS", 68)
LINKING = Feature("LINKING", 70)
ALGO_ID = Feature("ALGO_ID", 71)
OPTIONAL_CAPABILITIES = Feature("OPTIONAL_CAPABILITIES", 72)
ORDER_SOLICITED = Feature("ORDER_SOLICITED", 73)
PRIMARYEXCH = Feature("PRIMARYEXCH", 75)
FRACTIONAL_POSITIONS = Feature("FRACTIONAL_POSITIONS", 101)
MODELS_SUPPORT = Feature("MODELS_SUPPORT", 103)
SEC_DEF_OPT_PARAMS_REQ = Feature("SEC_DEF_OPT_PARAMS_REQ", 104)
SOFT_DOLLAR_TIER = Feature("SOFT_DOLLAR_TIER", 106)
REQ_FAMILY_CODES = Feature("REQ_FAMILY_CODES", 107)
REQ_MATCHING_SYMBOLS = Feature("REQ_MATCHING_SYMBOLS", 108)
CASH_QTY = Feature("CASH_QTY", 111)
REQ_MKT_DEPTH_EXCHANGES = Feature("REQ_MKT_DEPTH_EXCHANGES", 112)
TICK_NEWS = Feature("TICK_NEWS", 113)
REQ_SMART_COMPONENTS = Feature("REQ_SMART_COMPONENTS", 114)
REQ_NEWS_PROVIDERS = Feature("REQ_NEWS_PROVIDERS", 115)
REQ_NEWS_ARTICLE = Feature("REQ_NEWS_ARTICLE", 116)
REQ_HISTORICAL_NEWS = Feature("REQ_HISTORICAL_NEWS", 117)
REQ_HEAD_TIMESTAMP = Feature("REQ_HEAD_TIMESTAMP", 118)
REQ_HISTOGRAM = Feature("REQ_HISTOGRAM", 119)
MARKET_RULES = Feature("MARKET_RULES", 126)
PNL = Feature("PNL", 127)
NEWS_QUERY_ORIGINS = Feature("NEWS_QUERY_ORIGINS", 128)
UNREALIZED_PNL = Feature("UNREALIZED_PNL", 129)
HISTORICAL_TICKS = Feature("HISTORICAL_TICKS", 130)
REALIZED_PNL = Feature("REALIZED_PNL", 135)
LAST_LIQUIDITY = Feature("LAST_LIQUIDITY", 136)
TICK_BY_TICK = Feature("TICK_BY_TICK", 137)
MIFID_EXECUTION = Feature("MIFID_EXECUTION", 139)
SMART_DEPTH = Feature("SMART_DEPTH", 146)
COMPLETED_ORDERS = Feature("COMPLETED_ORDERS", 150)
STOCK_TYPE = Feature("STOCK_TYPE", 152)
REPLACE_FA_END = Feature("REPLACE_FA_END", 157)
WSHE_CALENDAR = Feature("WSHE_CALENDAR", 161)
FRACTIONAL_SIZE_SUPPORT = Feature("FRACTIONAL_SIZE_SUPPORT", 163)
SIZE_RULES = Feature("SIZE_RULES", 164)
HISTORICAL_SCHEDULE = Feature("HISTORICAL_SCHEDULE", 165)
ADVANCED_ORDER_REJECT = Feature("ADVANCED_ORDER_REJECT", 166)
USER_INFO = Feature("USER_INFO", 167)
CRYPTO_AGGREGATED_TRADES = Feature("CRYPTO_AGGREGATED_TRADES", 168)
MANUAL_ORDER_TIME = Feature("MANUAL_ORDER_TIME", 169)
WSH_EVENT_DATA_FILTERS = Feature("WSH_EVENT_DATA_FILTERS", 171)
WSH_EVENT_DATA_FILTERS_DATE = Feature("WSH_EVENT_DATA_FILTERS_DATE", 173)
INSTRUMENT_TIMEZONE = Feature("INSTRUMENT_TIMEZONE", 174)
BOND_ISSUERID = Feature("BOND_ISSUERID", 176)
FA_PROFILE_DESUPPORT = Feature("FA_PROFILE_DESUPPORT", 177)
PERM_ID_AS_LONG = Feature("PERM_ID_AS_LONG", 178)

FEATURES: Dict[str, Feature] = {
    value.name: value for value in list(globals().values()) if isinstance(value, Feature)
}


def is_supported(server_version: int, feature: Feature) -> bool:
    return server_version >= feature.min_version


def require(server_version: int, feature: Feature) -> None:
    """Raise :class:`ServerVersionUnsupported` unless the server has ``feature``."""
    if not is_supported(server_version, feature):
        raise ServerVersionUnsupported(server_version, feature.min_version, feature.name)


def lookup(name: str) -> Feature:
    try:
        return FEATURES[name.upper()]
    except KeyError:
        raise KeyError(f"unknown feature: {name}") from None


def version_range(min_version: int = MIN_CLIENT_VERSION, max_version: int = MAX_CLIENT_VERSION) -> str:
    """The handshake payload announcing the client's supported window."""
    if min_version > max_version:
        raise ValueError(f"min_version {min_version} is above max_version {max_version}")
    return f"v{min_version}..{max_version}"
