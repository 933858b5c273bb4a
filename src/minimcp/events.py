"""Listener registry for server notifications and client lifecycle events.

Listeners are keyed by name: a notification's method name, or a lifecycle
event such as "initialized". Emission is synchronous and follows
registration order. A listener may be a coroutine function; its coroutine is
scheduled on the running loop and not awaited.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class EventEmitter:
    """Maps event names to ordered listener lists."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Unsubscribe function
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            self.off(event, listener)

        return unsubscribe

    def once(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener that is removed after its first call."""

        def wrapper(payload: Any) -> Any:
            self.off(event, wrapper)
            return listener(payload)

        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, payload: Any = None) -> bool:
        """Call every listener registered for ``event``.

        Listener errors are logged and do not stop later listeners.

        Returns:
            True if at least one listener was registered
        """
        # Copy so listeners can unsubscribe while we iterate
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception:
                logger.exception(f"Error in listener for {event}")
        return bool(listeners)

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)

    def _schedule(self, event: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Async listener for {event} failed", exc_info=t.exception())

        task.add_done_callback(done)
