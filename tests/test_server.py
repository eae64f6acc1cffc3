"""Tests for GatewayServer."""

import asyncio

import pytest

from pbxgate.exceptions import ArgumentError, ErrorKind, TransportError
from pbxgate.gateway.menu import Menu, MenuItem, MenuScript
from pbxgate.gateway.server import GatewayServer
from pbxgate.gateway.session import GatewaySession
from pbxgate.transport.mock import MockTransport

TREE = {
    "agi_network_script": "app300",
    "entry": {"cmds": [{"command": "Answer"}, {"command": "Hangup"}]},
}


def greeting(script):
    return f"agi_network_script: {script}\nagi_channel: SIP/100-00000001\n\n".encode()


def make_session(script="app300"):
    transport = MockTransport(is_open=True)
    transport.add_response(greeting(script))
    transport.set_response_callback(lambda data: b"200 result=0\n")
    return GatewaySession(transport), transport


class TestGatewayServerSetup:
    """Tests for construction and registration."""

    def test_missing_port(self):
        with pytest.raises(ArgumentError) as exc_info:
            GatewayServer()
        assert exc_info.value.kind is ErrorKind.ARGUMENT
        assert "'port'" in str(exc_info.value)

    def test_register_tree(self):
        server = GatewayServer(4573)
        script = server.register(TREE)
        assert server.scripts == {"app300": script}

    def test_register_replaces(self):
        server = GatewayServer(4573)
        server.register(TREE)
        replacement = MenuScript(
            selector="app300",
            menus={"entry": Menu(commands=(MenuItem(command="Noop"),))},
        )
        server.register(replacement)
        assert server.scripts["app300"] is replacement

    def test_register_incomplete_script(self):
        server = GatewayServer(4573)
        with pytest.raises(ArgumentError):
            server.register({"entry": {"cmds": []}})
        assert server.scripts == {}

    def test_unregister(self):
        server = GatewayServer(4573)
        server.register(TREE)
        server.unregister("app300")
        server.unregister("app300")
        assert server.scripts == {}

    def test_repr(self):
        assert repr(GatewayServer(4573, host="127.0.0.1")) == "GatewayServer(127.0.0.1:4573, stopped)"


class TestGatewayServerHandle:
    """Tests for dispatching ready sessions."""

    @pytest.mark.asyncio
    async def test_runs_matching_script(self):
        server = GatewayServer(4573)
        server.register(TREE)
        session, transport = make_session()

        await server.handle(session)

        assert transport.written_text == "Answer\nHangup\n"
        assert session.closed
        assert server.sessions == frozenset()

    @pytest.mark.asyncio
    async def test_falls_back_to_handler(self):
        """Test that an unclaimed session goes to the connection handler."""
        seen = []

        async def on_connection(session):
            seen.append(session.network_script)
            await session.command("Answer")
            await session.close()

        server = GatewayServer(4573, on_connection=on_connection)
        server.register(TREE)
        session, transport = make_session("other")

        await server.handle(session)

        assert seen == ["other"]
        transport.assert_written(b"Answer\n")

    @pytest.mark.asyncio
    async def test_plain_function_handler(self):
        seen = []
        server = GatewayServer(4573, on_connection=seen.append)
        session, _ = make_session()
        await server.handle(session)
        assert seen == [session]
        await session.close()

    @pytest.mark.asyncio
    async def test_no_handler_closes(self):
        server = GatewayServer(4573)
        session, transport = make_session("unknown")
        await server.handle(session)
        assert session.closed
        assert transport.written_data == []

    @pytest.mark.asyncio
    async def test_handler_error_closes_session(self):
        def on_connection(session):
            raise RuntimeError("boom")

        server = GatewayServer(4573, on_connection=on_connection)
        session, _ = make_session()
        await server.handle(session)
        assert session.closed

    @pytest.mark.asyncio
    async def test_closed_before_greeting(self):
        transport = MockTransport(is_open=True)
        transport.feed_eof()
        session = GatewaySession(transport)
        seen = []
        server = GatewayServer(4573, on_connection=seen.append)

        await server.handle(session)

        assert seen == []
        assert session.closed


class TestGatewayServerTcp:
    """Tests over a loopback socket."""

    @pytest.mark.asyncio
    async def test_loopback_menu(self):
        server = GatewayServer(0, host="127.0.0.1")
        server.register(TREE)

        async with server:
            assert server.is_serving
            reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
            writer.write(greeting("app300"))
            await writer.drain()

            assert await asyncio.wait_for(reader.readline(), 2.0) == b"Answer\n"
            writer.write(b"200 result=0\n")
            assert await asyncio.wait_for(reader.readline(), 2.0) == b"Hangup\n"
            writer.write(b"200 result=1\n")
            await writer.drain()

            assert await asyncio.wait_for(reader.read(), 2.0) == b""
            writer.close()
            await writer.wait_closed()

        assert not server.is_serving
        assert server.port is None

    @pytest.mark.asyncio
    async def test_close_with_peer_connected(self):
        """Test that closing does not wait on a peer that stays connected."""
        server = GatewayServer(0, host="127.0.0.1")
        await server.start()
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        try:
            for _ in range(100):
                if server.sessions:
                    break
                await asyncio.sleep(0.01)
            assert len(server.sessions) == 1

            await asyncio.wait_for(server.close(), 3.0)

            assert not server.is_serving
            assert await asyncio.wait_for(reader.read(), 2.0) == b""
        finally:
            writer.close()
            await writer.wait_closed()

    @pytest.mark.asyncio
    async def test_listening_and_close_signals(self):
        events = []
        server = GatewayServer(0, host="127.0.0.1")
        server.on("listening", lambda port: events.append(("listening", port)))
        server.on("close", lambda: events.append(("close",)))

        async with server:
            port = server.port

        assert events == [("listening", port), ("close",)]

    @pytest.mark.asyncio
    async def test_bind_failure_signals_error(self):
        errors = []
        first = GatewayServer(0, host="127.0.0.1")
        await first.start()
        try:
            second = GatewayServer(first.port, host="127.0.0.1")
            second.on("error", errors.append)
            with pytest.raises(TransportError) as exc_info:
                await second.start()
            assert exc_info.value.kind is ErrorKind.SERVER_ERROR
            assert errors == [exc_info.value]
        finally:
            await first.close()
