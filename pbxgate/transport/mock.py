"""
Mock transport for testing.

This module provides a transport that replays queued chunks instead of
talking to a PBX. Chunks can be queued up front or generated in reaction
to writes through a response callback.

Example:
    >>> mock = MockTransport()
    >>> mock.add_response(b"agi_network_script: app300\\n\\n")
    >>> mock.set_response_callback(lambda data: b"200 result=0\\n")
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

from pbxgate.exceptions import ConnectionClosedError, ErrorKind, TransportError
from pbxgate.transport.abc import AbstractTransport


class MockTransport(AbstractTransport):
    """
    Mock transport for tests.

    Reads return queued chunks in FIFO order and wait while the queue is
    empty, like a socket would. End of stream is reported after
    ``feed_eof()`` or ``close()``.

    Attributes:
        written_data: List of all bytes written to the transport.
    """

    def __init__(
        self,
        peer_name: str = "mock://pbx",
        is_open: bool = False,
    ) -> None:
        """
        Initialize the mock transport.

        Args:
            peer_name: Identifier for the mock transport.
            is_open: Start in the open state, like an accepted connection.
        """
        self._peer_name = peer_name
        self._is_open = is_open
        self._eof = False
        self._chunks: deque[bytes] = deque()
        self._written_data: list[bytes] = []
        self._response_callback: Callable[[bytes], bytes | None] | None = None
        self._wakeup: asyncio.Event | None = None
        self.open_count = 0
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def peer_name(self) -> str:
        return self._peer_name

    @property
    def written_data(self) -> list[bytes]:
        """Get all data written to the transport."""
        return self._written_data.copy()

    @property
    def written_text(self) -> str:
        """All written data, decoded and concatenated."""
        return b"".join(self._written_data).decode("utf-8")

    @property
    def last_written(self) -> bytes | None:
        """Get the most recently written data."""
        return self._written_data[-1] if self._written_data else None

    def _event(self) -> asyncio.Event:
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        return self._wakeup

    def _notify(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def add_response(self, response: bytes) -> None:
        """
        Queue a chunk for a later read.

        Args:
            response: Bytes returned, as one chunk, by a later read.
        """
        self._chunks.append(bytes(response))
        self._notify()

    def add_responses(self, *responses: bytes) -> None:
        """Queue several chunks."""
        for response in responses:
            self._chunks.append(bytes(response))
        self._notify()

    def feed_eof(self) -> None:
        """Report end of stream once the queued chunks are consumed."""
        self._eof = True
        self._notify()

    def set_response_callback(
        self,
        callback: Callable[[bytes], bytes | None] | None,
    ) -> None:
        """
        Set a callback to generate responses to writes.

        The callback receives each written chunk; a non-None return value
        is queued as the next inbound chunk.

        Args:
            callback: Function that takes written bytes and returns response.
        """
        self._response_callback = callback

    def clear_written(self) -> None:
        """Clear only the written data history."""
        self._written_data.clear()

    async def open(self) -> None:
        if self._is_open:
            raise TransportError(ErrorKind.SOCKET_ERROR, "mock already open")
        self._is_open = True
        self.open_count += 1

    async def close(self) -> None:
        if self._is_open:
            self.close_count += 1
        self._is_open = False
        self._notify()

    async def write(self, data: bytes) -> None:
        """
        Record written data and run the response callback.

        Raises:
            ConnectionClosedError: If transport is not open.
        """
        if not self._is_open:
            raise ConnectionClosedError()

        self._written_data.append(bytes(data))

        if self._response_callback:
            response = self._response_callback(bytes(data))
            if response is not None:
                self.add_response(response)

    async def read(self, max_bytes: int = 4096) -> bytes:
        while True:
            if not self._is_open:
                return b""
            if self._chunks:
                chunk = self._chunks.popleft()
                if len(chunk) > max_bytes:
                    self._chunks.appendleft(chunk[max_bytes:])
                    chunk = chunk[:max_bytes]
                return chunk
            if self._eof:
                return b""

            event = self._event()
            event.clear()
            await event.wait()

    def assert_written(self, expected: bytes, index: int = -1) -> None:
        """
        Assert that specific data was written.

        Args:
            expected: Expected bytes.
            index: Index in written_data list (-1 for last).

        Raises:
            AssertionError: If data doesn't match.
        """
        if not self._written_data:
            raise AssertionError("No data written to mock transport")

        actual = self._written_data[index]
        if actual != expected:
            raise AssertionError(f"Written data mismatch: expected {expected!r}, got {actual!r}")

    def assert_write_count(self, expected: int) -> None:
        """
        Assert number of write operations.

        Raises:
            AssertionError: If count doesn't match.
        """
        actual = len(self._written_data)
        if actual != expected:
            raise AssertionError(f"Write count mismatch: expected {expected}, got {actual}")
