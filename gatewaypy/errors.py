"""Exception types raised by the gateway client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

# Gateway error codes that are informational (farm status, data feed notices).
WARNING_CODES = frozenset(
    (
        2100, 2101, 2102, 2103, 2104, 2105, 2106, 2107, 2108, 2109,
        2110, 2119, 2137, 2151, 2152, 2158, 2167, 2168, 2169,
    )
)

# Request id the gateway uses for errors not tied to a request.
UNSPECIFIED_REQUEST_ID = -1


class GatewayError(Exception):
    """Base class for every error raised by this package."""


class ConnectionFailed(GatewayError):
    """The transport could not be opened or the handshake failed."""


class ConnectionReset(GatewayError):
    """The transport was severed while the connection was in use."""

    def __init__(self, message: str = "connection was reset by the gateway") -> None:
        super().__init__(message)


class NotConnected(GatewayError):
    """An operation required a ready connection."""


class Cancelled(GatewayError):
    """The subscription was cancelled by its consumer."""


class AlreadySubscribed(GatewayError):
    """Only one subscription of this kind may be open at a time."""


class EndOfStream(GatewayError):
    """Raised by decoders to mark the server's explicit end of a stream.

    Subscriptions convert this into normal completion; callers never see it.
    """


class ServerVersionUnsupported(GatewayError):
    """The connected gateway predates a feature the caller tried to use."""

    def __init__(self, server_version: int, required_version: int, feature: str) -> None:
        self.server_version = server_version
        self.required_version = required_version
        self.feature = feature
        super().__init__(
            f"server version {required_version} required for {feature}, "
            f"but connected to version {server_version}"
        )


class UnexpectedResponse(GatewayError):
    """A frame did not match any message type expected by the exchange."""

    def __init__(self, message: Any) -> None:
        self.message = message
        super().__init__(f"unexpected response: {message!r}")


class DecodeError(GatewayError):
    """A field could not be read as the type the decoder expected."""

    def __init__(self, field_index: int, expected_type: str, value: Optional[str] = None) -> None:
        self.field_index = field_index
        self.expected_type = expected_type
        self.value = value
        if value is None:
            text = f"expected {expected_type} at field {field_index} and found end of message"
        else:
            text = f"expected {expected_type} at field {field_index}, found {value!r}"
        super().__init__(text)


class ServerError(GatewayError):
    """An application-level error frame sent by the gateway."""

    def __init__(
        self,
        code: int,
        message: str,
        request_id: int = UNSPECIFIED_REQUEST_ID,
        advanced_order_reject: str = "",
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        self.advanced_order_reject = advanced_order_reject
        super().__init__(f"[{code}] {message}")

    @property
    def is_warning(self) -> bool:
        return self.code in WARNING_CODES


@dataclass(frozen=True)
class Notice:
    """An error or warning from the gateway that is not tied to a request."""

    code: int
    message: str
    request_id: int = UNSPECIFIED_REQUEST_ID
    advanced_order_reject: str = ""

    @property
    def is_warning(self) -> bool:
        return self.code in WARNING_CODES

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"
