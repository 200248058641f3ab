"""
Protocol layer: field codec, message catalogue, version gate and parsers.
"""

from .messages import IncomingMessage, OutgoingMessage
from .parsers import PARSERS, parse_message
from .timezone import find_timezone, parse_connection_time
from .versions import Feature, is_supported, require
from .wire import (
    UNSET_DOUBLE,
    UNSET_INTEGER,
    UNSET_LONG,
    RequestMessage,
    ResponseMessage,
    encode_length,
    read_frame,
)

__all__ = [
    "IncomingMessage",
    "OutgoingMessage",
    "RequestMessage",
    "ResponseMessage",
    "encode_length",
    "read_frame",
    "UNSET_INTEGER",
    "UNSET_LONG",
    "UNSET_DOUBLE",
    "Feature",
    "is_supported",
    "require",
    "PARSERS",
    "parse_message",
    "find_timezone",
    "parse_connection_time",
]
