"""
pbxgate - asyncio adapter for line-oriented PBX control protocols.

Two roles are supported over a persistent TCP connection:

- Gateway (server) role: the PBX connects in per call, sends its greeting
  variables, and is driven one command at a time, optionally by a scripted
  menu tree chosen by the ``agi_network_script`` variable.
- Manager (client) role: log in once, then run many concurrent actions
  correlated by ActionID while receiving unsolicited events.

Example:
    >>> from pbxgate import GatewayServer, ManagerClient
    >>>
    >>> async def handle(session):
    ...     await session.command("Answer")
    ...     reply = await session.command('Get Data "beep" 3000 1')
    ...     print(reply.character)
    ...     await session.close()
    >>>
    >>> async def main():
    ...     async with GatewayServer(4573, on_connection=handle) as server:
    ...         async with ManagerClient("pbx.local", 5038, "admin", "secret") as ami:
    ...             print(await ami.action("Ping"))
    ...             await server.serve_forever()
"""

from pbxgate.config import GatewayConfig, ManagerConfig
from pbxgate.exceptions import (
    ArgumentError,
    AuthenticationError,
    CommandEmptyError,
    CommandInFlightError,
    ConnectionClosedError,
    ErrorKind,
    NotConnectedError,
    PbxGateError,
    ProtocolError,
    TransportError,
)
from pbxgate.gateway import (
    GatewayServer,
    GatewaySession,
    Menu,
    MenuEngine,
    MenuItem,
    MenuScript,
)
from pbxgate.manager import ClientState, ManagerClient
from pbxgate.protocol import DecodedReply, ManagerMessage
from pbxgate.transport import AbstractTransport, MockTransport, TcpTransport

__version__ = "0.1.0"
__all__ = [
    # Gateway role
    "GatewayServer",
    "GatewaySession",
    "Menu",
    "MenuItem",
    "MenuScript",
    "MenuEngine",
    "DecodedReply",
    # Manager role
    "ManagerClient",
    "ClientState",
    "ManagerMessage",
    # Config
    "GatewayConfig",
    "ManagerConfig",
    # Exceptions
    "ErrorKind",
    "PbxGateError",
    "ArgumentError",
    "TransportError",
    "ConnectionClosedError",
    "ProtocolError",
    "CommandEmptyError",
    "CommandInFlightError",
    "AuthenticationError",
    "NotConnectedError",
    # Transport
    "AbstractTransport",
    "TcpTransport",
    "MockTransport",
    # Version
    "__version__",
]
