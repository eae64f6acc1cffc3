"""
Command correlation for the gateway role.

The gateway protocol has no correlation tokens: the PBX answers commands
strictly in order, one reply per command. CommandChannel therefore keeps
at most one command in flight and hands each completed reply to it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pbxgate.exceptions import (
    CommandEmptyError,
    CommandInFlightError,
    ConnectionClosedError,
)
from pbxgate.protocol.constants import ProtocolConstants
from pbxgate.protocol.reply import DecodedReply, ReplyAssembler, decode_reply

if TYPE_CHECKING:
    from pbxgate.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)


class PendingCommand:
    """The command awaiting its reply."""

    __slots__ = ("text", "future")

    def __init__(self, text: str, future: asyncio.Future[DecodedReply]) -> None:
        self.text = text
        self.future = future

    def __repr__(self) -> str:
        return f"PendingCommand({self.text!r})"


class CommandChannel:
    """
    Sends gateway commands and matches them with their replies.

    The channel writes to the transport but does not read from it; the
    owning session feeds it each inbound line through feed_line().

    Example:
        >>> channel = CommandChannel(transport)
        >>> reply = await channel.send("Answer")
        >>> reply.ok
        True
    """

    def __init__(self, transport: AbstractTransport) -> None:
        self._transport = transport
        self._assembler = ReplyAssembler()
        self._pending: PendingCommand | None = None

    @property
    def pending(self) -> PendingCommand | None:
        """The command in flight, if any."""
        return self._pending

    @property
    def busy(self) -> bool:
        return self._pending is not None

    async def send(self, command: str) -> DecodedReply:
        """
        Send one command and wait for its decoded reply.

        Malformed and non-200 replies are returned, not raised; check
        ``reply.ok``. If the caller is cancelled (e.g. by asyncio.wait_for),
        the channel stays busy until the late reply arrives and is dropped.

        Args:
            command: Command text without terminator, e.g. ``Answer``.

        Returns:
            The decoded reply.

        Raises:
            CommandEmptyError: If command is empty.
            CommandInFlightError: If a previous command is still unanswered.
            ConnectionClosedError: If the connection closes first.
            TransportError: If the write fails.
        """
        if not command:
            raise CommandEmptyError()
        if self._pending is not None:
            raise CommandInFlightError(None, self._pending.text)

        future: asyncio.Future[DecodedReply] = asyncio.get_running_loop().create_future()
        self._pending = PendingCommand(command, future)

        logger.debug("-> %s", command)
        try:
            await self._transport.write(
                (command + ProtocolConstants.EOL).encode(ProtocolConstants.ENCODING)
            )
            return await future
        except asyncio.CancelledError:
            # The PBX still answers; the channel stays busy until that reply
            # arrives and is discarded by feed_line().
            future.cancel()
            logger.debug("Cancelled %r, awaiting its reply", self._pending)
            raise
        finally:
            pending = self._pending
            if pending is not None and pending.future is future and not future.cancelled():
                self._pending = None

    def feed_line(self, line: str) -> bool:
        """
        Process one inbound reply line.

        Args:
            line: Line without terminator.

        Returns:
            True if the line is a hangup notice. The caller handles it; the
            pending command is left for abort().
        """
        if line.lower() == ProtocolConstants.HANGUP_LINE:
            logger.debug("<- %s (hangup)", line)
            return True

        raw = self._assembler.push(line)
        if raw is None:
            return False

        reply = decode_reply(raw)
        pending = self._pending
        if pending is None:
            logger.debug("Dropping unsolicited reply: %r", raw)
            return False
        if pending.future.done():
            logger.debug("Dropping reply to cancelled %r: %r", pending, raw)
            self._pending = None
            return False

        logger.debug("<- %r", reply)
        self._pending = None
        pending.future.set_result(reply)
        return False

    def abort(self, exc: BaseException | None = None) -> None:
        """
        Fail the pending command, if any.

        Args:
            exc: Exception to raise in the waiting sender; defaults to
                ConnectionClosedError.
        """
        self._assembler.reset()
        pending, self._pending = self._pending, None
        if pending is None or pending.future.done():
            return
        logger.debug("Aborting %r", pending)
        pending.future.set_exception(exc if exc is not None else ConnectionClosedError())
