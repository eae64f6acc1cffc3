"""
Manager actions and inbound message classification.

Outbound actions are ``key: value`` blocks led by ``Action`` and a unique
``ActionID``::

    Action: Ping
    ActionID: 5b0c2a8e-...

Inbound blocks are either responses (``Response`` + ``ActionID``, no
``Event``), routed back to the action that produced them, or events (any
block with ``Event``), broadcast to listeners.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Mapping
from enum import Enum, auto

from pbxgate.protocol.constants import ProtocolConstants


class MessageKind(Enum):
    """Classification of an inbound manager message."""

    RESPONSE = auto()
    """Reply to an action, correlated by ActionID."""

    EVENT = auto()
    """Unsolicited event."""

    OTHER = auto()
    """Neither; dropped by the client."""


class ManagerMessage(Mapping[str, str]):
    """
    Read-only view of one inbound manager message.

    Behaves like a dict of the block's fields.

    Example:
        >>> msg = ManagerMessage({"Response": "Success", "ActionID": "42"})
        >>> msg.kind
        <MessageKind.RESPONSE: 1>
        >>> msg["Response"]
        'Success'
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, str]) -> None:
        self._fields = dict(fields)

    def __getitem__(self, key: str) -> str:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ManagerMessage):
            return self._fields == other._fields
        if isinstance(other, Mapping):
            return self._fields == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    @property
    def response(self) -> str | None:
        return self._fields.get(ProtocolConstants.FIELD_RESPONSE)

    @property
    def action_id(self) -> str | None:
        return self._fields.get(ProtocolConstants.FIELD_ACTION_ID)

    @property
    def event(self) -> str | None:
        return self._fields.get(ProtocolConstants.FIELD_EVENT)

    @property
    def kind(self) -> MessageKind:
        return classify_message(self._fields)

    @property
    def succeeded(self) -> bool:
        """True if this is a ``Response: Success`` message."""
        return self.response == ProtocolConstants.RESPONSE_SUCCESS

    def to_dict(self) -> dict[str, str]:
        return dict(self._fields)

    def __repr__(self) -> str:
        return f"ManagerMessage({self._fields!r})"


def classify_message(fields: Mapping[str, str]) -> MessageKind:
    """
    Decide whether a block is a response or an event.

    A block carrying Response and ActionID without Event is a response. Any
    block carrying Event is an event, even if it also has Response and
    ActionID. Empty values count as absent.
    """
    if (
        fields.get(ProtocolConstants.FIELD_RESPONSE)
        and fields.get(ProtocolConstants.FIELD_ACTION_ID)
        and not fields.get(ProtocolConstants.FIELD_EVENT)
    ):
        return MessageKind.RESPONSE
    if fields.get(ProtocolConstants.FIELD_EVENT):
        return MessageKind.EVENT
    return MessageKind.OTHER


def event_signal(event_name: str) -> str:
    """Listener signal for a named event, e.g. ``eventShutdown``."""
    return ProtocolConstants.EVENT_PREFIX + event_name


def generate_action_id() -> str:
    """Return a new random (version 4) UUID string."""
    return str(uuid.uuid4())


def build_action_fields(
    name: str,
    fields: Mapping[str, object] | None,
    action_id: str,
) -> dict[str, str]:
    """
    Order the fields of an outbound action.

    ``Action`` and ``ActionID`` come first and cannot be overridden by the
    caller; remaining fields are kept only when truthy.
    """
    ordered = {
        ProtocolConstants.FIELD_ACTION: name,
        ProtocolConstants.FIELD_ACTION_ID: action_id,
    }
    for key, value in (fields or {}).items():
        if key in ordered or not value:
            continue
        ordered[key] = str(value)
    return ordered


def encode_action(
    name: str,
    fields: Mapping[str, object] | None,
    action_id: str,
) -> bytes:
    """
    Serialize an action for the wire.

    Returns:
        ``key: value`` lines terminated by CRLF, then a blank line.

    Example:
        >>> encode_action("Ping", {}, "1")
        b'Action: Ping\\r\\nActionID: 1\\r\\n\\r\\n'
    """
    ordered = build_action_fields(name, fields, action_id)
    text = "".join(
        f"{key}: {value}{ProtocolConstants.CRLF}" for key, value in ordered.items()
    )
    text += ProtocolConstants.CRLF
    return text.encode(ProtocolConstants.ENCODING)
