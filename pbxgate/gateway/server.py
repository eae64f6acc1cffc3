"""
Gateway server.

Listens for connections from the PBX and, for each one, waits for the
greeting and then either runs the registered MenuScript whose selector
matches the ``agi_network_script`` variable, or hands the session to the
application's connection handler.

Signals (see ListenerRegistry):
    listening  the server is bound; receives the port
    error      binding failed; receives the TransportError
    close      the server stopped listening and closed its sessions

Example:
    >>> async def handle(session):
    ...     await session.command("Answer")
    ...     await session.command('Say Digits "42" ""')
    ...     await session.close()
    >>>
    >>> server = GatewayServer(4573, on_connection=handle)
    >>> server.register({"agi_network_script": "app300", "entry": {"cmds": [...]}})
    >>> async with server:
    ...     await server.serve_forever()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable

from pbxgate.config import GatewayConfig
from pbxgate.exceptions import ConnectionClosedError, ErrorKind, TransportError
from pbxgate.gateway.menu import MenuEngine, MenuScript
from pbxgate.gateway.session import GatewaySession
from pbxgate.listeners import Listener, ListenerRegistry
from pbxgate.transport.tcp import TcpTransport, error_code

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[GatewaySession], Any]


class GatewayServer:
    """
    Accepts gateway connections from the PBX.

    Attributes:
        config: Listening address.
        scripts: Registered menu scripts by selector.
        port: Bound port once started (useful with port 0).
    """

    def __init__(
        self,
        port: int | None = None,
        host: str | None = None,
        on_connection: ConnectionHandler | None = None,
    ) -> None:
        """
        Initialize the server.

        Args:
            port: TCP port to listen on; 0 picks a free port.
            host: Address to bind, default all interfaces.
            on_connection: Called with each ready session that no menu
                script claims. May be a coroutine function.

        Raises:
            ArgumentError: If port is missing or invalid.
        """
        self._config = GatewayConfig.from_args(port=port, host=host)
        self._on_connection = on_connection
        self._scripts: dict[str, MenuScript] = {}
        self._server: asyncio.AbstractServer | None = None
        self._sessions: set[GatewaySession] = set()
        self._listeners = ListenerRegistry()

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def scripts(self) -> Mapping[str, MenuScript]:
        return dict(self._scripts)

    @property
    def sessions(self) -> frozenset[GatewaySession]:
        """Sessions currently connected."""
        return frozenset(self._sessions)

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def port(self) -> int | None:
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def register(self, script: MenuScript | Mapping[str, Any]) -> MenuScript:
        """
        Register a menu script for its selector, replacing any previous one.

        Args:
            script: A MenuScript or an operator-authored tree (see
                MenuScript.from_tree).

        Returns:
            The registered script.

        Raises:
            ArgumentError: If the script is incomplete.
        """
        if isinstance(script, MenuScript):
            script = script.check()
        else:
            script = MenuScript.from_tree(script)
        self._scripts[script.selector] = script
        logger.debug("Registered menu %r", script.selector)
        return script

    def unregister(self, selector: str) -> None:
        self._scripts.pop(selector, None)

    def set_connection_handler(self, handler: ConnectionHandler | None) -> None:
        self._on_connection = handler

    def on(self, signal: str, handler: Listener) -> None:
        """Register a handler for ``listening``, ``error`` or ``close``."""
        self._listeners.on(signal, handler)

    def off(self, signal: str, handler: Listener) -> None:
        self._listeners.off(signal, handler)

    async def start(self) -> None:
        """
        Start listening.

        Raises:
            TransportError: SERVER_ERROR if the address cannot be bound.
        """
        if self._server is not None:
            return
        try:
            self._server = await asyncio.start_server(
                self._accept, self._config.host, self._config.port
            )
        except OSError as e:
            error = TransportError(ErrorKind.SERVER_ERROR, error_code(e))
            logger.error("Cannot listen on %s:%s: %s", self._config.host, self._config.port, error)
            self._listeners.emit("error", error)
            raise error from e
        logger.info("Listening on %s:%s", self._config.host, self.port)
        self._listeners.emit("listening", self.port)

    async def serve_forever(self) -> None:
        await self.start()
        await self._server.serve_forever()

    async def close(self) -> None:
        """Stop listening and close every open session."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        # wait_closed() also waits for accepted connections
        for session in list(self._sessions):
            await session.close()
        if server is not None:
            await server.wait_closed()
            logger.info("Server closed")
            self._listeners.emit("close")

    async def handle(self, session: GatewaySession) -> None:
        """
        Serve one session: wait for the greeting, then dispatch it.

        Used for every accepted connection; callable directly with a session
        over any transport.
        """
        self._sessions.add(session)
        try:
            try:
                await session.ready()
            except ConnectionClosedError:
                logger.info("%s closed before greeting", session.transport.peer_name)
                return

            script = self._scripts.get(session.network_script or "")
            if script is not None:
                await MenuEngine(session, script).run()
                return

            if self._on_connection is None:
                logger.warning(
                    "No menu or handler for %s (script %r), closing",
                    session.transport.peer_name,
                    session.network_script,
                )
                await session.close()
                return

            result = self._on_connection(session)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Session %s failed", session.transport.peer_name)
            await session.close()
        finally:
            self._sessions.discard(session)

    async def _accept(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        transport = TcpTransport.from_streams(reader, writer)
        logger.debug("Connection from %s", transport.peer_name)
        await self.handle(GatewaySession(transport))

    async def __aenter__(self) -> GatewayServer:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        status = "serving" if self.is_serving else "stopped"
        return f"GatewayServer({self._config.host}:{self._config.port}, {status})"
