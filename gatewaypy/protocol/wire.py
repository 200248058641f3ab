# wire.py
"""
Field codec for the gateway's text protocol.

A frame on the wire is a 4-byte big-endian length followed by a body; the
body is a sequence of text fields, each terminated by a single NUL byte. An
empty field (two adjacent terminators) is a real, zero-length value.
"""

from __future__ import annotations

import asyncio
import struct
import sys
from enum import IntEnum
from typing import Any, Iterable, List, Optional

import pandas as pd

from ..errors import DecodeError
from .messages import (
    EXECUTION_ID_INDEX,
    ORDER_ID_INDEX,
    REQUEST_ID_INDEX,
    IncomingMessage,
)

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

TERMINATOR = "\0"
HEADER = struct.Struct(">I")
MAX_FRAME_LENGTH = 0x00FFFFFF

# Protocol sentinels for "no value". Decoders pass them to the optional readers.
UNSET_INTEGER = 2**31 - 1
UNSET_LONG = 2**63 - 1
UNSET_DOUBLE = sys.float_info.max
INFINITY_STR = "Infinity"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def to_field(value: Any) -> str:
    """Render one value in its protocol text form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, IntEnum):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value == float("inf"):
            return INFINITY_STR
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def encode_length(text: str) -> bytes:
    """Length-prefix a body for the wire."""
    data = text.encode("utf-8")
    return HEADER.pack(len(data)) + data


def split_fields(text: str, separator: str = TERMINATOR) -> List[str]:
    """Split on the terminator, keeping empty fields but dropping the final fragment."""
    fields = text.split(separator)
    if fields and fields[-1] == "":
        fields.pop()
    return fields


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read one length-prefixed frame body."""
    header = await reader.readexactly(HEADER.size)
    (size,) = HEADER.unpack(header)
    if size > MAX_FRAME_LENGTH:
        raise DecodeError(0, "frame length", str(size))
    return await reader.readexactly(size) if size > 0 else b""


# -----------------------------------------------------------------------------
# Outgoing messages
# -----------------------------------------------------------------------------

class RequestMessage:
    """Append-only list of fields for an outgoing message."""

    def __init__(self, fields: Optional[Iterable[Any]] = None) -> None:
        self.fields: List[str] = []
        for value in fields or ():
            self.push(value)

    def push(self, value: Any) -> "RequestMessage":
        self.fields.append(to_field(value))
        return self

    def push_list(self, values: Iterable[Any], separator: str = ",") -> "RequestMessage":
        self.fields.append(separator.join(to_field(v) for v in values))
        return self

    def encode(self) -> str:
        return "".join(field + TERMINATOR for field in self.fields)

    def encode_simple(self) -> str:
        return "".join(field + "|" for field in self.fields)

    def to_frame(self) -> bytes:
        return encode_length(self.encode())

    @classmethod
    def from_simple(cls, text: str) -> "RequestMessage":
        message = cls()
        message.fields = split_fields(text, "|")
        return message

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, i: int) -> str:
        return self.fields[i]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestMessage):
            return NotImplemented
        return self.fields == other.fields

    def __repr__(self) -> str:
        return f"RequestMessage({self.encode_simple()!r})"


# -----------------------------------------------------------------------------
# Incoming messages
# -----------------------------------------------------------------------------

class ResponseMessage:
    """Ordered fields of an incoming message, read through a cursor.

    Fields are consumed strictly in protocol order; skipping one is explicit
    (:meth:`skip`). Typed readers raise :class:`DecodeError` when the cursor
    runs past the end or a numeric parse fails.
    """

    def __init__(self, fields: Optional[List[str]] = None) -> None:
        self.fields: List[str] = list(fields or [])
        self.i = 0

    # ---- Construction -------------------------------------------------------

    @classmethod
    def decode(cls, data: bytes) -> "ResponseMessage":
        # Some gateway installs send non-UTF-8 time zone names; keep the rest readable.
        return cls(split_fields(data.decode("utf-8", errors="replace")))

    @classmethod
    def from_text(cls, text: str) -> "ResponseMessage":
        return cls(split_fields(text))

    @classmethod
    def from_simple(cls, text: str) -> "ResponseMessage":
        return cls(split_fields(text, "|"))

    def encode(self) -> str:
        return "".join(field + TERMINATOR for field in self.fields)

    def encode_simple(self) -> str:
        return "".join(field + "|" for field in self.fields)

    # ---- Header inspection --------------------------------------------------

    @property
    def message_type(self) -> IncomingMessage:
        if not self.fields:
            return IncomingMessage.NOT_VALID
        try:
            code = int(self.fields[0])
        except ValueError:
            return IncomingMessage.NOT_VALID
        return IncomingMessage.from_code(code)

    @property
    def is_shutdown(self) -> bool:
        return self.message_type == IncomingMessage.SHUTDOWN

    @property
    def request_id(self) -> Optional[int]:
        return self._peek_optional_int(REQUEST_ID_INDEX.get(self.message_type))

    @property
    def order_id(self) -> Optional[int]:
        return self._peek_optional_int(ORDER_ID_INDEX.get(self.message_type))

    @property
    def execution_id(self) -> Optional[str]:
        i = EXECUTION_ID_INDEX.get(self.message_type)
        if i is None or i >= len(self.fields):
            return None
        return self.fields[i]

    def _peek_optional_int(self, i: Optional[int]) -> Optional[int]:
        if i is None:
            return None
        try:
            return self.peek_int(i)
        except DecodeError:
            return None

    def peek_int(self, i: int) -> int:
        if i >= len(self.fields):
            raise DecodeError(i, "int")
        return self._parse(i, self.fields[i], int, "int")

    def peek_string(self, i: int) -> str:
        if i >= len(self.fields):
            raise DecodeError(i, "string")
        return self.fields[i]

    # ---- Cursor readers -----------------------------------------------------

    def skip(self, count: int = 1) -> None:
        self.i += count

    def remaining(self) -> int:
        return max(0, len(self.fields) - self.i)

    def _next(self, expected: str) -> str:
        if self.i >= len(self.fields):
            raise DecodeError(self.i, expected)
        field = self.fields[self.i]
        self.i += 1
        return field

    @staticmethod
    def _parse(i: int, field: str, kind, expected: str):
        try:
            return kind(field)
        except ValueError:
            raise DecodeError(i, expected, field) from None

    def next_string(self) -> str:
        return self._next("string")

    def next_bool(self) -> bool:
        return self._next("bool") == "1"

    def next_int(self) -> int:
        i = self.i
        return self._parse(i, self._next("int"), int, "int")

    def next_long(self) -> int:
        i = self.i
        return self._parse(i, self._next("long"), int, "long")

    def next_optional_int(self, sentinel: Optional[int] = None) -> Optional[int]:
        i = self.i
        field = self._next("optional int")
        if field == "":
            return None
        value = self._parse(i, field, int, "optional int")
        return None if value == sentinel else value

    def next_optional_long(self, sentinel: Optional[int] = None) -> Optional[int]:
        i = self.i
        field = self._next("optional long")
        if field == "":
            return None
        value = self._parse(i, field, int, "optional long")
        return None if value == sentinel else value

    def next_double(self) -> float:
        i = self.i
        field = self._next("double")
        if field in ("", "0", "0.0"):
            return 0.0
        if field == INFINITY_STR:
            return float("inf")
        return self._parse(i, field, float, "double")

    def next_optional_double(self, sentinel: Optional[float] = None) -> Optional[float]:
        i = self.i
        field = self._next("optional double")
        if field == "":
            return None
        if field == INFINITY_STR:
            return float("inf")
        value = self._parse(i, field, float, "optional double")
        return None if value == sentinel else value

    def next_date_time(self) -> pd.Timestamp:
        """Read a unix-seconds field as a UTC timestamp."""
        i = self.i
        field = self._next("timestamp")
        if field == "":
            raise DecodeError(i, "timestamp", field)
        seconds = self._parse(i, field, int, "timestamp")
        try:
            return pd.Timestamp(seconds, unit="s", tz="UTC")
        except (ValueError, OverflowError):
            raise DecodeError(i, "timestamp", field) from None

    def __len__(self) -> int:
        return len(self.fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResponseMessage):
            return NotImplemented
        return self.fields == other.fields

    def __repr__(self) -> str:
        return f"ResponseMessage({self.encode_simple()!r})"
