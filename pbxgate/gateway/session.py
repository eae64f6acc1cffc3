"""
One gateway connection from the PBX.

The PBX opens a connection per call, sends its greeting variables as a
header block, then reads commands and writes replies until the call ends.
GatewaySession runs the read side in a background task, exposes the
greeting variables, and serializes commands through a CommandChannel.

Lifecycle:
    OPEN -> greeting -> READY -> command()* -> CLOSED

The session closes on close(), on a ``HANGUP`` line, on end of stream and
on transport errors. Closing fails any pending command with
ConnectionClosedError.

Signals (see ListenerRegistry):
    hangup  the PBX reported the caller hung up
    error   a TransportError ended the session
    close   the session closed, for any reason
"""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from pbxgate.exceptions import ConnectionClosedError, TransportError
from pbxgate.gateway.channel import CommandChannel
from pbxgate.listeners import Listener, ListenerRegistry
from pbxgate.protocol.constants import ProtocolConstants
from pbxgate.protocol.framer import GatewayFramer, HeaderBlock

if TYPE_CHECKING:
    from pbxgate.protocol.reply import DecodedReply
    from pbxgate.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)


class GatewaySession:
    """
    A connected PBX peer in the gateway role.

    Attributes:
        variables: Greeting variables (``agi_channel``, ``agi_callerid``...).
        hung_up: True once the PBX reported a hangup.
        closed: True once the session has closed.
        error: The TransportError that ended the session, if any.

    Example:
        >>> session = GatewaySession(transport)
        >>> await session.ready()
        >>> await session.command("Answer")
        >>> await session.command('Say Digits "123" ""')
        >>> await session.close()
    """

    def __init__(self, transport: AbstractTransport) -> None:
        self._transport = transport
        self._framer = GatewayFramer()
        self._channel = CommandChannel(transport)
        self._listeners = ListenerRegistry()
        self._variables: dict[str, str] = {}
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()
        self._reader_task: asyncio.Task[None] | None = None
        self._hung_up = False
        self._error: TransportError | None = None

    @property
    def transport(self) -> AbstractTransport:
        return self._transport

    @property
    def variables(self) -> Mapping[str, str]:
        return MappingProxyType(self._variables)

    @property
    def network_script(self) -> str | None:
        """The ``agi_network_script`` greeting variable."""
        return self._variables.get(ProtocolConstants.SELECTOR_VARIABLE)

    @property
    def hung_up(self) -> bool:
        return self._hung_up

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def error(self) -> TransportError | None:
        return self._error

    def get(self, name: str, default: str | None = None) -> str | None:
        """Look up a greeting variable."""
        return self._variables.get(name, default)

    def on(self, signal: str, handler: Listener) -> None:
        """Register a handler for ``hangup``, ``error`` or ``close``."""
        self._listeners.on(signal, handler)

    def on_hangup(self, handler: Listener) -> None:
        self._listeners.on("hangup", handler)

    async def start(self) -> None:
        """Open the transport if needed and start reading."""
        if self._reader_task is not None:
            return
        if not self._transport.is_open:
            await self._transport.open()
        self._reader_task = asyncio.create_task(self._read_loop())

    async def ready(self) -> Mapping[str, str]:
        """
        Wait for the greeting.

        Returns:
            The greeting variables.

        Raises:
            ConnectionClosedError: If the session closed before the greeting.
        """
        await self.start()
        if not self._ready.is_set():
            ready = asyncio.ensure_future(self._ready.wait())
            closed = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({ready, closed}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                ready.cancel()
                closed.cancel()
        if not self._ready.is_set():
            raise ConnectionClosedError()
        return self.variables

    async def command(self, text: str) -> DecodedReply:
        """
        Run one command and return its decoded reply.

        Raises:
            ConnectionClosedError: If the session is closed or closes while
                waiting.
            CommandInFlightError: If another command is still unanswered.
        """
        if self.closed:
            raise ConnectionClosedError()
        await self.start()
        return await self._channel.send(text)

    async def close(self) -> None:
        """Close the session and its transport."""
        await self._shutdown()
        task = self._reader_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _read_loop(self) -> None:
        try:
            while True:
                chunk = await self._transport.read(ProtocolConstants.READ_SIZE)
                if not chunk:
                    logger.debug("End of stream from %s", self._transport.peer_name)
                    break
                if self._dispatch(chunk):
                    break
        except TransportError as e:
            logger.error("Session %s failed: %s", self._transport.peer_name, e)
            self._error = e
            self._listeners.emit("error", e)
        finally:
            await self._shutdown()

    def _dispatch(self, chunk: bytes) -> bool:
        """Feed one chunk; returns True when the session should stop."""
        for event in self._framer.feed(chunk):
            if isinstance(event, HeaderBlock):
                self._variables.update(event.fields)
                logger.debug(
                    "Greeting from %s: %d variables",
                    self._transport.peer_name,
                    len(event.fields),
                )
                self._ready.set()
                continue

            if self._channel.feed_line(event.text):
                logger.warning("Hangup on %s", self._transport.peer_name)
                self._hung_up = True
                self._listeners.emit("hangup")
                return True
        return False

    async def _shutdown(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._channel.abort()
        await self._transport.close()
        logger.debug("Session %s closed", self._transport.peer_name)
        self._listeners.emit("close")

    def __repr__(self) -> str:
        state = "closed" if self.closed else ("ready" if self._ready.is_set() else "open")
        return f"GatewaySession({self._transport.peer_name!r}, {state})"
