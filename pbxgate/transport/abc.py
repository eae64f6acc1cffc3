"""
Abstract transport interface for the PBX protocols.

A transport is a byte stream: the gateway server wraps each accepted socket
in one, the manager client opens one to the PBX. Framing happens above this
layer, so transports only move raw chunks.

Implementations:
- TcpTransport: asyncio streams over TCP
- MockTransport: scripted transport for tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType


class AbstractTransport(ABC):
    """
    Abstract base class for PBX stream transports.

    Transports support the async context manager protocol:

        async with TcpTransport("pbx.local", 5038) as transport:
            await transport.write(data)
            chunk = await transport.read()

    Attributes:
        is_open: Whether the stream is currently usable.
        peer_name: Identifier for the remote end, for logging.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """
        Check if the transport is currently open.

        Returns:
            True if connected and ready for I/O, False otherwise.
        """
        ...

    @property
    @abstractmethod
    def peer_name(self) -> str:
        """
        Get the transport identifier.

        Returns:
            Remote address or other identifier (e.g., "10.0.0.5:5038").
        """
        ...

    @abstractmethod
    async def open(self) -> None:
        """
        Open the transport connection.

        Raises:
            TransportError: If the connection cannot be established.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the transport connection.

        Safe to call multiple times. A read blocked on the transport
        returns end of stream.
        """
        ...

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write data to the transport.

        Args:
            data: Bytes to send.

        Raises:
            ConnectionClosedError: If the transport is not open.
            TransportError: If the write fails.
        """
        ...

    @abstractmethod
    async def read(self, max_bytes: int = 4096) -> bytes:
        """
        Read the next available chunk.

        Args:
            max_bytes: Upper bound on the chunk size.

        Returns:
            Up to max_bytes bytes; b"" at end of stream or once closed.

        Raises:
            TransportError: If the read fails.
        """
        ...

    async def __aenter__(self) -> AbstractTransport:
        """Async context manager entry - opens the transport."""
        if not self.is_open:
            await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit - closes the transport."""
        await self.close()
