"""
Gateway reply decoding.

A reply is one line, ``<code> result=<int> [(<data>)]``, except for the
multi-line usage error the PBX sends for an invalid command::

    520-Invalid command syntax.  Proper usage follows:
    Usage: ...
    520 End of proper usage.

ReplyAssembler turns a stream of lines into complete raw replies;
decode_reply turns a raw reply into a DecodedReply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pbxgate.protocol.constants import ProtocolConstants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedReply:
    """
    A decoded gateway reply.

    ``code`` is None when the status code could not be parsed. ``result``
    and ``data`` are only set for successful (200) replies.

    Attributes:
        code: Three digit status code, or None for a malformed reply.
        result: Integer result; key presses arrive as character codes.
        data: Text found between the delimiters of the third token.
        raw: The complete raw reply.
    """

    code: int | None
    result: int | None = None
    data: str | None = None
    raw: str = ""

    @property
    def ok(self) -> bool:
        """True for a 200 reply."""
        return self.code == ProtocolConstants.SUCCESS_CODE

    @property
    def malformed(self) -> bool:
        """True if the status code was unreadable."""
        return self.code is None

    @property
    def character(self) -> str | None:
        """The result interpreted as a character code, if it is one."""
        if self.result is None or not 0 <= self.result <= 0x10FFFF:
            return None
        return chr(self.result)

    def __repr__(self) -> str:
        if self.malformed:
            return "DecodedReply(malformed)"
        if not self.ok:
            return f"DecodedReply({self.code})"
        return f"DecodedReply({self.code}, result={self.result}, data={self.data!r})"


def _parse_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def decode_reply(raw: str) -> DecodedReply:
    """
    Decode a complete raw reply.

    Args:
        raw: Reply text, possibly spanning several lines.

    Returns:
        DecodedReply. Never raises for bad input.

    Example:
        >>> decode_reply("200 result=49 (abcd)")
        DecodedReply(200, result=49, data='abcd')
        >>> decode_reply("510 Invalid")
        DecodedReply(510)
    """
    code = _parse_int(raw[: ProtocolConstants.CODE_WIDTH])
    if code is None:
        logger.debug("Malformed reply: %r", raw)
        return DecodedReply(code=None, raw=raw)

    if code != ProtocolConstants.SUCCESS_CODE:
        return DecodedReply(code=code, raw=raw)

    body = raw[ProtocolConstants.RESULT_OFFSET:].replace(
        ProtocolConstants.RESULT_PREFIX, "", 1
    )
    result = _parse_int(body.split(" ", 1)[0])

    tokens = raw.split(" ")
    data = tokens[2][1:-1] if len(tokens) == 3 else None

    return DecodedReply(code=code, result=result, data=data, raw=raw)


class ReplyAssembler:
    """
    Collects lines into complete raw replies.

    Most replies are a single line and come straight back from push(). A
    line starting with ``520-Invalid`` opens a continuation; lines are then
    accumulated, each followed by ``\\n``, until one containing
    ``520 End of proper`` closes it.

    Example:
        >>> assembler = ReplyAssembler()
        >>> assembler.push("520-Invalid command syntax.")
        >>> assembler.push("520 End of proper usage.")
        '520-Invalid command syntax.\\n520 End of proper usage.\\n'
    """

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._continuing = False

    @property
    def continuing(self) -> bool:
        """True while inside a multi-line reply."""
        return self._continuing

    def push(self, line: str) -> str | None:
        """
        Add one line.

        Returns:
            The complete raw reply, or None while a continuation is open.
        """
        if line.startswith(ProtocolConstants.CONTINUATION_START):
            self._continuing = True

        if not self._continuing:
            return line

        self._lines.append(line + ProtocolConstants.EOL)
        if ProtocolConstants.CONTINUATION_END not in line:
            return None

        raw = "".join(self._lines)
        self.reset()
        return raw

    def reset(self) -> None:
        self._lines = []
        self._continuing = False
