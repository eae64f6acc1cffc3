"""
Transport layer for the PBX protocols.

Available transports:
- TcpTransport: asyncio streams over TCP
- MockTransport: Mock transport for testing without a PBX

Example:
    >>> from pbxgate.transport import TcpTransport
    >>> async with TcpTransport("pbx.local", 5038) as transport:
    ...     await transport.write(action_bytes)
    ...     chunk = await transport.read()
"""

from pbxgate.transport.abc import AbstractTransport
from pbxgate.transport.mock import MockTransport
from pbxgate.transport.tcp import TcpTransport

__all__ = [
    "AbstractTransport",
    "MockTransport",
    "TcpTransport",
]
