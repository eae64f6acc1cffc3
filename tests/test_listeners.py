"""Tests for ListenerRegistry."""

import pytest

from pbxgate.listeners import ListenerRegistry


class TestListenerRegistry:
    """Tests for signal registration and delivery."""

    @pytest.fixture
    def listeners(self):
        return ListenerRegistry()

    def test_emit_in_order(self, listeners):
        calls = []
        listeners.on("ready", lambda value: calls.append(("a", value)))
        listeners.on("ready", lambda value: calls.append(("b", value)))
        assert listeners.emit("ready", 1) == 2
        assert calls == [("a", 1), ("b", 1)]

    def test_emit_without_handlers(self, listeners):
        assert listeners.emit("nothing") == 0

    def test_off(self, listeners):
        calls = []
        listeners.on("close", calls.append)
        listeners.off("close", calls.append)
        listeners.off("close", calls.append)
        assert listeners.count("close") == 0
        listeners.emit("close", 1)
        assert calls == []

    def test_failing_handler_does_not_stop_others(self, listeners):
        calls = []

        def broken(value):
            raise RuntimeError("broken")

        listeners.on("error", broken)
        listeners.on("error", calls.append)
        assert listeners.emit("error", "x") == 2
        assert calls == ["x"]

    @pytest.mark.asyncio
    async def test_coroutine_handler(self, listeners):
        calls = []

        async def handler(value):
            calls.append(value)

        listeners.on("eventAny", handler)
        listeners.emit("eventAny", "message")
        assert calls == []
        await listeners.drain()
        assert calls == ["message"]

    @pytest.mark.asyncio
    async def test_failing_coroutine_handler_is_logged(self, listeners, caplog):
        async def handler():
            raise RuntimeError("late failure")

        listeners.on("hangup", handler)
        listeners.emit("hangup")
        await listeners.drain()
        assert "Listener for 'hangup' failed" in caplog.text
