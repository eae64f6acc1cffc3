"""
Manager interface client.

The client keeps one authenticated connection to the PBX and multiplexes
any number of outstanding actions over it. Each action carries a fresh
ActionID; the matching response resolves that action's future. Blocks with
an Event field are broadcast to listeners instead.

The client implements a state machine:
    DISCONNECTED -> connect() -> CONNECTING -> AUTHENTICATING -> READY
    READY -> close() / socket error / login rejected -> CLOSED

Signals (see ListenerRegistry):
    ready          login accepted; receives the login response
    error          PbxGateError that ended (or refused) the connection
    eventAny       every event message
    event<Name>    event messages whose Event field is <Name>

Example:
    >>> client = ManagerClient("pbx.local", 5038, "admin", "secret")
    >>> client.on("eventShutdown", lambda message: print("PBX going down"))
    >>> async with client:
    ...     response = await client.action("CoreSettings")
    ...     print(response["AsteriskVersion"])
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Any, Mapping

from pbxgate.config import ManagerConfig
from pbxgate.exceptions import (
    AuthenticationError,
    ConnectionClosedError,
    NotConnectedError,
    PbxGateError,
    TransportError,
)
from pbxgate.listeners import Listener, ListenerRegistry
from pbxgate.protocol.action import (
    ManagerMessage,
    MessageKind,
    encode_action,
    event_signal,
    generate_action_id,
)
from pbxgate.protocol.constants import ProtocolConstants
from pbxgate.protocol.framer import MessageFramer
from pbxgate.transport.abc import AbstractTransport
from pbxgate.transport.tcp import TcpTransport

# Module logger
logger = logging.getLogger(__name__)


class ClientState(Enum):
    """Manager client connection states."""

    DISCONNECTED = auto()
    """Not connected yet."""

    CONNECTING = auto()
    """Opening the transport."""

    AUTHENTICATING = auto()
    """Login action sent, waiting for its response."""

    READY = auto()
    """Logged in; actions may be sent."""

    CLOSED = auto()
    """Connection ended; create a new client to reconnect."""


class PendingAction:
    """An action waiting for its response."""

    __slots__ = ("action_id", "name", "payload", "future")

    def __init__(
        self,
        action_id: str,
        name: str,
        payload: bytes,
        future: asyncio.Future[ManagerMessage],
    ) -> None:
        self.action_id = action_id
        self.name = name
        self.payload = payload
        self.future = future

    def __repr__(self) -> str:
        return f"PendingAction({self.name!r}, {self.action_id!r})"


class ManagerClient:
    """
    Client for the PBX manager interface.

    Attributes:
        state: Current connection state.
        config: Address and credentials.
        pending: Number of actions awaiting a response.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = ProtocolConstants.DEFAULT_MANAGER_PORT,
        username: str | None = None,
        password: str | None = None,
        *,
        config: ManagerConfig | None = None,
        transport: AbstractTransport | None = None,
        **options: Any,
    ) -> None:
        """
        Initialize the client.

        Either pass host/port/username/password, or a ready ManagerConfig.

        Args:
            host: PBX hostname or IP address.
            port: Manager port (default 5038).
            username: Manager user name.
            password: Manager secret.
            config: Complete settings; overrides the individual arguments.
            transport: Transport to use instead of TCP (tests).
            **options: Extra ManagerConfig fields (events, connect_timeout).

        Raises:
            ArgumentError: If a required setting is missing or invalid.
        """
        self._config = config or ManagerConfig.from_args(
            host=host, port=port, username=username, password=password, **options
        )
        self._transport = transport or TcpTransport(
            self._config.host, self._config.port, self._config.connect_timeout
        )
        self._framer = MessageFramer()
        self._listeners = ListenerRegistry()
        self._actions: dict[str, PendingAction] = {}
        self._state = ClientState.DISCONNECTED
        self._reader_task: asyncio.Task[None] | None = None
        self._error: PbxGateError | None = None

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def config(self) -> ManagerConfig:
        return self._config

    @property
    def transport(self) -> AbstractTransport:
        return self._transport

    @property
    def is_ready(self) -> bool:
        return self._state == ClientState.READY

    @property
    def pending(self) -> int:
        return len(self._actions)

    @property
    def error(self) -> PbxGateError | None:
        """The error that closed the client, if any."""
        return self._error

    def on(self, signal: str, handler: Listener) -> None:
        """Register a handler for a signal (see module docstring)."""
        self._listeners.on(signal, handler)

    def off(self, signal: str, handler: Listener) -> None:
        self._listeners.off(signal, handler)

    def on_event(self, name: str | None, handler: Listener) -> None:
        """Register for one event name, or for every event with None."""
        signal = ProtocolConstants.ANY_EVENT if name is None else event_signal(name)
        self._listeners.on(signal, handler)

    async def connect(self) -> ManagerMessage:
        """
        Connect and log in.

        Returns:
            The login response.

        Raises:
            NotConnectedError: If connect() was already called.
            TransportError: If the connection fails.
            AuthenticationError: If the login is rejected.
        """
        if self._state != ClientState.DISCONNECTED:
            raise NotConnectedError(None, self._state.name)

        self._state = ClientState.CONNECTING
        logger.info("Connecting to %s", self._transport.peer_name)
        try:
            if not self._transport.is_open:
                await self._transport.open()
        except TransportError as e:
            logger.error("Connection to %s failed: %s", self._transport.peer_name, e)
            await self._fail(e)
            raise

        self._reader_task = asyncio.create_task(self._read_loop())
        self._state = ClientState.AUTHENTICATING

        response = await self._send(
            ProtocolConstants.LOGIN_ACTION,
            {
                "Username": self._config.username,
                "Secret": self._config.password,
                "Events": self._config.events,
            },
        )

        if not response.succeeded:
            logger.error("Login to %s rejected: %s", self._transport.peer_name, response.response)
            error = AuthenticationError()
            await self._fail(error)
            raise error

        self._state = ClientState.READY
        logger.info("Logged in to %s", self._transport.peer_name)
        self._listeners.emit("ready", response)
        return response

    async def action(
        self,
        name: str,
        fields: Mapping[str, object] | None = None,
    ) -> ManagerMessage:
        """
        Send an action and wait for its response.

        Fields with falsy values are left out. No timeout is applied; wrap
        the call in asyncio.wait_for() if one is needed.

        Args:
            name: Action name, e.g. ``Originate``.
            fields: Additional action fields.

        Returns:
            The response message.

        Raises:
            NotConnectedError: If the client is not logged in.
            ConnectionClosedError: If the connection ends first.
        """
        if self._state != ClientState.READY:
            raise NotConnectedError(None, self._state.name)
        return await self._send(name, fields)

    async def close(self) -> None:
        """Close the connection. Pending actions fail with ConnectionClosedError."""
        if self._state == ClientState.CLOSED:
            return
        await self._shutdown()
        task = self._reader_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _send(self, name: str, fields: Mapping[str, object] | None) -> ManagerMessage:
        action_id = generate_action_id()
        payload = encode_action(name, fields, action_id)
        future: asyncio.Future[ManagerMessage] = asyncio.get_running_loop().create_future()
        self._actions[action_id] = PendingAction(action_id, name, payload, future)

        logger.debug("-> %s (%s)", name, action_id)
        try:
            await self._transport.write(payload)
            return await future
        finally:
            self._actions.pop(action_id, None)

    async def _read_loop(self) -> None:
        error: PbxGateError
        try:
            while True:
                chunk = await self._transport.read(ProtocolConstants.READ_SIZE)
                if not chunk:
                    error = ConnectionClosedError()
                    break
                for block in self._framer.feed(chunk):
                    self._dispatch(ManagerMessage(block.fields))
        except TransportError as e:
            error = e

        if self._state != ClientState.CLOSED:
            logger.error("Lost connection to %s: %s", self._transport.peer_name, error)
            await self._fail(error)

    def _dispatch(self, message: ManagerMessage) -> None:
        kind = message.kind
        if kind is MessageKind.RESPONSE:
            pending = self._actions.pop(message.action_id, None)
            if pending is None:
                logger.warning("Dropping response for unknown ActionID %s", message.action_id)
                return
            logger.debug("<- %s (%s)", message.response, pending.action_id)
            if not pending.future.done():
                pending.future.set_result(message)
            return

        if kind is MessageKind.EVENT:
            logger.debug("<- event %s", message.event)
            self._listeners.emit(ProtocolConstants.ANY_EVENT, message)
            self._listeners.emit(event_signal(message.event), message)
            return

        logger.debug("Ignoring message without Response or Event: %r", message)

    async def _fail(self, error: PbxGateError) -> None:
        self._error = error
        await self._shutdown()
        self._listeners.emit("error", error)

    async def _shutdown(self) -> None:
        if self._state == ClientState.CLOSED:
            return
        self._state = ClientState.CLOSED
        actions, self._actions = self._actions, {}
        for pending in actions.values():
            if not pending.future.done():
                pending.future.set_exception(ConnectionClosedError())
        await self._transport.close()
        logger.debug("Connection to %s closed", self._transport.peer_name)

    async def __aenter__(self) -> ManagerClient:
        if self._state == ClientState.DISCONNECTED:
            await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"ManagerClient({self._transport.peer_name!r}, state={self._state.name})"
