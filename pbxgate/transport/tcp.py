"""
TCP transport using asyncio streams.

The manager client opens one of these to the PBX; the gateway server wraps
every accepted connection with from_streams().

Example:
    >>> transport = TcpTransport("pbx.local", 5038)
    >>> async with transport:
    ...     await transport.write(b"Action: Ping\\r\\n\\r\\n")
    ...     chunk = await transport.read()
"""

from __future__ import annotations

import asyncio
import errno
import logging

from pbxgate.exceptions import ConnectionClosedError, ErrorKind, TransportError
from pbxgate.protocol.constants import ProtocolConstants
from pbxgate.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)


def error_code(exc: OSError) -> str:
    """Symbolic name for an OS error, e.g. ``ECONNREFUSED``."""
    if exc.errno is not None and exc.errno in errno.errorcode:
        return errno.errorcode[exc.errno]
    return str(exc) or type(exc).__name__


class TcpTransport(AbstractTransport):
    """
    Stream transport over a TCP socket.

    Attributes:
        host: Remote host for outbound connections.
        port: Remote port for outbound connections.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        """
        Initialize an outbound TCP transport.

        Args:
            host: Hostname or IP address to connect to.
            port: TCP port.
            connect_timeout: Seconds to wait for the connection, None to
                wait for the operating system.
        """
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._peer: str | None = None

    @classmethod
    def from_streams(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> TcpTransport:
        """Wrap an already connected stream pair (e.g. from start_server)."""
        transport = cls()
        transport._reader = reader
        transport._writer = writer
        peer = writer.get_extra_info("peername")
        if isinstance(peer, tuple) and len(peer) >= 2:
            transport._peer = f"{peer[0]}:{peer[1]}"
        elif peer:
            transport._peer = str(peer)
        return transport

    @property
    def is_open(self) -> bool:
        return (
            self._writer is not None
            and not self._writer.is_closing()
            and self._reader is not None
        )

    @property
    def peer_name(self) -> str:
        if self._peer:
            return self._peer
        return f"{self._host}:{self._port}"

    async def open(self) -> None:
        """
        Connect to host:port.

        Raises:
            TransportError: If no host/port was given or the connect fails.
        """
        if self.is_open:
            return
        if not self._host or not self._port:
            raise TransportError(ErrorKind.SOCKET_ERROR, "no address")

        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            raise TransportError(ErrorKind.SOCKET_ERROR, "ETIMEDOUT") from None
        except OSError as e:
            raise TransportError(ErrorKind.SOCKET_ERROR, error_code(e)) from e

        logger.debug("Connected to %s", self.peer_name)

    async def close(self) -> None:
        """Close the socket. Safe to call multiple times."""
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is None:
            return

        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("Error while closing %s: %s", self.peer_name, e)

    async def write(self, data: bytes) -> None:
        if not self.is_open:
            raise ConnectionClosedError()

        try:
            self._writer.write(data)
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(ErrorKind.SOCKET_ERROR, error_code(e)) from e

    async def read(self, max_bytes: int = ProtocolConstants.READ_SIZE) -> bytes:
        reader = self._reader
        if reader is None:
            return b""

        try:
            return await reader.read(max_bytes)
        except (ConnectionError, OSError) as e:
            raise TransportError(ErrorKind.SOCKET_ERROR, error_code(e)) from e

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"TcpTransport({self.peer_name!r}, {status})"
