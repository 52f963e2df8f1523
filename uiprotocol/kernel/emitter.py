"""
uiprotocol Kernel — Event Emitter

Publish/subscribe scoped to one runtime instance. Event names are fixed;
each carries a fixed argument shape:

  command:before   (command,)
  command          (command,)
  trust:blocked    (command, reason)
  error            (diagnostic,)
  warning          (diagnostic,)
"""

from __future__ import annotations

from typing import Any, Callable

RUNTIME_EVENTS: frozenset[str] = frozenset({"command", "command:before", "trust:blocked", "error", "warning"})

EventHandler = Callable[..., None]


class EventEmitter:
    def __init__(self, event_names: frozenset[str] = RUNTIME_EVENTS) -> None:
        self._event_names = event_names
        self._handlers: dict[str, list[EventHandler]] = {}

    def _check(self, name: str) -> None:
        if name not in self._event_names:
            raise ValueError(f"Unknown event: {name!r}")

    def on(self, name: str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe. Returns a callable that unsubscribes this handler."""
        self._check(name)
        self._handlers.setdefault(name, []).append(handler)
        return lambda: self.off(name, handler)

    def off(self, name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(name)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[name]

    def emit(self, name: str, *args: Any) -> None:
        self._check(name)
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers.get(name, ())):
            handler(*args)

    def listener_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))
