"""
Exception hierarchy for pbxgate.

Every exception carries an ErrorKind tag plus the formatted detail that was
reported with it. The message templates live in a read-only table that is
built once at import time.

1. Argument errors (missing configuration, invalid menu scripts) are raised
   before any connection is attempted
2. Transport errors cover socket and listener failures, including close
3. Authentication failures are distinct from transport failures
4. Malformed replies are never raised; see pbxgate.protocol.reply
"""

from __future__ import annotations

from enum import Enum, auto
from types import MappingProxyType
from typing import Final, Mapping


class ErrorKind(Enum):
    """Tags for every error the library reports."""

    UNDEFINED = auto()
    ARGUMENT = auto()
    SERVER_ERROR = auto()
    SERVER_CLOSED = auto()
    SOCKET_ERROR = auto()
    SOCKET_CLOSED = auto()
    COMMAND_EMPTY = auto()
    COMMAND_IN_FLIGHT = auto()
    MENU_SELECTOR = auto()
    MENU_ENTRY = auto()
    MENU_REFERENCE = auto()
    AUTH_FAILED = auto()
    NOT_CONNECTED = auto()


ERROR_MESSAGES: Final[Mapping[ErrorKind, str]] = MappingProxyType(
    {
        ErrorKind.UNDEFINED: "Undefined error.",
        ErrorKind.ARGUMENT: "Argument '%s' missing or invalid.",
        ErrorKind.SERVER_ERROR: "Server error. Code: %s.",
        ErrorKind.SERVER_CLOSED: "Server closed.",
        ErrorKind.SOCKET_ERROR: "Socket error. Code: %s.",
        ErrorKind.SOCKET_CLOSED: "Socket closed.",
        ErrorKind.COMMAND_EMPTY: "Empty command.",
        ErrorKind.COMMAND_IN_FLIGHT: "Command already in flight: %s.",
        ErrorKind.MENU_SELECTOR: "Missing menu selector.",
        ErrorKind.MENU_ENTRY: "Missing entry menu '%s'.",
        ErrorKind.MENU_REFERENCE: "Unknown menu '%s' referenced.",
        ErrorKind.AUTH_FAILED: "Authentication failed.",
        ErrorKind.NOT_CONNECTED: "Not connected (state: %s).",
    }
)


def format_error(kind: ErrorKind, *details: object) -> str:
    """
    Render the message template for an error kind.

    Details fill the template's placeholders in order. A template without
    placeholders ignores them; surplus details are appended, separated by
    spaces.
    """
    template = ERROR_MESSAGES.get(kind, ERROR_MESSAGES[ErrorKind.UNDEFINED])
    slots = template.count("%s")
    used = details[:slots]
    if len(used) < slots:
        used = used + ("?",) * (slots - len(used))
    message = template % used if slots else template
    extra = details[slots:]
    if extra:
        message = " ".join([message, *(str(item) for item in extra)])
    return message


class PbxGateError(Exception):
    """
    Base exception for all pbxgate errors.

    Attributes:
        kind: The ErrorKind tag.
        detail: The formatted, human readable message.
    """

    default_kind: ErrorKind = ErrorKind.UNDEFINED

    def __init__(self, kind: ErrorKind | None = None, *details: object) -> None:
        self.kind = kind if kind is not None else self.default_kind
        self.detail = format_error(self.kind, *details)
        super().__init__(self.detail)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.detail!r})"


class ArgumentError(PbxGateError):
    """
    Missing or invalid configuration.

    Raised for missing host, port or credentials and for menu scripts that
    do not hold together.
    """

    default_kind = ErrorKind.ARGUMENT


class TransportError(PbxGateError):
    """
    Transport-level error.

    Raised for socket, connect and listener failures.
    """

    default_kind = ErrorKind.SOCKET_ERROR


class ConnectionClosedError(TransportError):
    """
    The connection is gone.

    Pending commands and actions fail with this when the transport closes,
    whether the peer hung up, the socket dropped, or close() was called.
    """

    default_kind = ErrorKind.SOCKET_CLOSED


class ProtocolError(PbxGateError):
    """Misuse of the command protocol by the caller."""


class CommandEmptyError(ProtocolError):
    """An empty command was submitted."""

    default_kind = ErrorKind.COMMAND_EMPTY


class CommandInFlightError(ProtocolError):
    """A command was sent before the previous reply arrived."""

    default_kind = ErrorKind.COMMAND_IN_FLIGHT


class AuthenticationError(PbxGateError):
    """The manager login action was rejected."""

    default_kind = ErrorKind.AUTH_FAILED


class NotConnectedError(PbxGateError):
    """An action was attempted on a client that is not ready."""

    default_kind = ErrorKind.NOT_CONNECTED
