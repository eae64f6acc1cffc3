"""
Incremental framing of the PBX text protocols.

Two framers share one buffering strategy:

1. **MessageFramer** (manager role): the stream is a continuous sequence of
   header blocks, each terminated by a blank line (``\\n\\n`` or
   ``\\r\\n\\r\\n``). Every complete block is emitted as a HeaderBlock.

2. **GatewayFramer** (gateway role): the stream starts with one header block
   holding the peer's greeting variables. After that block the framer
   switches, exactly once, to line mode and emits every ``\\n`` terminated
   segment as a RawLine.

Framers do no I/O. ``feed()`` takes whatever bytes the transport delivered
and returns the events completed by them; incomplete trailing data stays
buffered for the next call.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass, field
from typing import Union

from pbxgate.protocol.constants import ProtocolConstants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderBlock:
    """
    One parsed ``key: value`` block.

    Attributes:
        fields: Parsed key/value pairs. Keys are trimmed and non-empty.
        raw: The block text as received, without its terminator.
    """

    fields: dict[str, str] = field(default_factory=dict)
    raw: str = ""

    def __repr__(self) -> str:
        return f"HeaderBlock({len(self.fields)} fields)"


@dataclass(frozen=True)
class RawLine:
    """A single line with its terminator removed."""

    text: str


FrameEvent = Union[HeaderBlock, RawLine]


def parse_header_block(text: str) -> dict[str, str]:
    """
    Parse the ``key: value`` lines of a block.

    Lines are split on the first colon; key and value are trimmed. Lines
    without a colon and lines whose key trims to nothing are dropped.

    Args:
        text: Block text without its terminator.

    Returns:
        Mapping of keys to values. A repeated key keeps its last value.

    Example:
        >>> parse_header_block("Foo:   bar  \\nnoise\\n: nokey")
        {'Foo': 'bar'}
    """
    fields: dict[str, str] = {}
    for line in text.split(ProtocolConstants.EOL):
        if not line:
            continue
        key, separator, value = line.partition(ProtocolConstants.KEY_SEPARATOR)
        if not separator:
            continue
        key = key.strip()
        if key:
            fields[key] = value.strip()
    return fields


def find_block_end(buffer: str) -> tuple[int, int]:
    """
    Locate the earliest block terminator in a buffer.

    Returns:
        Tuple of (index, terminator_length), or (-1, 0) when no complete
        block is buffered.
    """
    best_index, best_length = -1, 0
    for terminator in ProtocolConstants.BLOCK_TERMINATORS:
        index = buffer.find(terminator)
        if index != -1 and (best_index == -1 or index < best_index):
            best_index, best_length = index, len(terminator)
    return best_index, best_length


class _BufferedFramer:
    """Shared text buffer with incremental UTF-8 decoding."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder(ProtocolConstants.ENCODING)(
            errors="replace"
        )
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Buffered text not yet emitted."""
        return self._buffer

    def _append(self, data: bytes | str) -> None:
        if isinstance(data, str):
            self._buffer += data
        else:
            self._buffer += self._decoder.decode(bytes(data))

    def _next_block(self) -> HeaderBlock | None:
        index, length = find_block_end(self._buffer)
        if index == -1:
            return None
        text = self._buffer[:index]
        self._buffer = self._buffer[index + length:]
        block = HeaderBlock(fields=parse_header_block(text), raw=text)
        logger.debug("Framed header block with %d fields", len(block.fields))
        return block

    def reset(self) -> None:
        """Drop buffered data."""
        self._decoder.reset()
        self._buffer = ""


class MessageFramer(_BufferedFramer):
    """
    Framer for a continuous stream of header blocks.

    Example:
        >>> framer = MessageFramer()
        >>> framer.feed(b"Event: Shutdown\\r\\n")
        []
        >>> framer.feed(b"\\r\\n")
        [HeaderBlock(1 fields)]
    """

    def feed(self, data: bytes | str) -> list[HeaderBlock]:
        """
        Add received data and return every block it completes.

        Args:
            data: Raw bytes (or already decoded text) from the transport.

        Returns:
            Completed blocks in arrival order. Empty input yields nothing.
        """
        if not data:
            return []
        self._append(data)

        blocks: list[HeaderBlock] = []
        while True:
            block = self._next_block()
            if block is None:
                break
            blocks.append(block)
        return blocks


class GatewayFramer(_BufferedFramer):
    """
    Framer for a greeting block followed by reply lines.

    Attributes:
        in_body: True once the greeting block has been emitted.
    """

    def __init__(self) -> None:
        super().__init__()
        self._in_body = False

    @property
    def in_body(self) -> bool:
        return self._in_body

    def feed(self, data: bytes | str) -> list[FrameEvent]:
        """
        Add received data and return the events it completes.

        The first event is always the greeting HeaderBlock; everything after
        it is a RawLine. Lines keep no ``\\n`` and no trailing ``\\r``.
        """
        if not data:
            return []
        self._append(data)

        events: list[FrameEvent] = []
        if not self._in_body:
            block = self._next_block()
            if block is None:
                return events
            events.append(block)
            self._in_body = True
            logger.debug("Greeting received, switching to line mode")

        while True:
            line, separator, rest = self._buffer.partition(ProtocolConstants.EOL)
            if not separator:
                break
            self._buffer = rest
            if line.endswith(ProtocolConstants.CR):
                line = line[:-1]
            events.append(RawLine(line))
        return events

    def reset(self) -> None:
        super().reset()
        self._in_body = False
