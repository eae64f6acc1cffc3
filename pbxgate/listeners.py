"""
Named notification signals.

Sessions and clients publish lifecycle and protocol notifications (hangup,
ready, error, events) through a ListenerRegistry. Handlers may be plain
callables or coroutine functions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class ListenerRegistry:
    """
    Signal name to handler list mapping.

    Handlers run in registration order. Plain handlers run inline; a
    coroutine handler is started as a task, so it may itself wait on the
    connection that emitted the signal. A handler that raises is logged and
    does not stop the remaining handlers.

    Example:
        >>> listeners = ListenerRegistry()
        >>> listeners.on("ready", print)
        >>> listeners.emit("ready", message)
        1
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, signal: str, handler: Listener) -> None:
        """Register a handler for a signal."""
        self._handlers.setdefault(signal, []).append(handler)

    def off(self, signal: str, handler: Listener) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers.get(signal)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[signal]

    def count(self, signal: str) -> int:
        return len(self._handlers.get(signal, ()))

    def emit(self, signal: str, *args: Any) -> int:
        """
        Call every handler registered for a signal.

        Returns:
            Number of handlers called.
        """
        handlers = list(self._handlers.get(signal, ()))
        for handler in handlers:
            try:
                result = handler(*args)
            except Exception:
                logger.exception("Listener for %r failed", signal)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done(signal))
        return len(handlers)

    def _task_done(self, signal: str) -> Callable[[asyncio.Task[Any]], None]:
        def done(task: asyncio.Task[Any]) -> None:
            self._tasks.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Listener for %r failed", signal, exc_info=task.exception()
                )

        return done

    async def drain(self) -> None:
        """Wait for coroutine handlers started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
