from __future__ import annotations

import logging
import threading
from typing import Any, Callable

Listener = Callable[[Any], None]

_ALL = "*"


class EventBus:
    """
    Observer registry for segment lifecycle events.

    Events are dataclasses carrying a class-level `name`. Listeners run on the
    emitting thread (VAS loop or a pipeline worker), so they should be quick and
    must not block. A listener that raises is logged and skipped.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}
        self.logger = logger or logging.getLogger(__name__)

    def subscribe(self, name: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(name, []).append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(name, listener)

        return _unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        return self.subscribe(_ALL, listener)

    def unsubscribe(self, name: str, listener: Listener) -> bool:
        with self._lock:
            listeners = self._listeners.get(name)
            if not listeners or listener not in listeners:
                return False
            listeners.remove(listener)
            return True

    def listener_count(self, name: str) -> int:
        with self._lock:
            return len(self._listeners.get(name, ()))

    def emit(self, event: Any) -> int:
        name = getattr(event, "name", None)
        if not name:
            raise ValueError(f"event has no name: {event!r}")
        with self._lock:
            targets = list(self._listeners.get(name, ())) + list(self._listeners.get(_ALL, ()))

        delivered = 0
        for listener in targets:
            try:
                listener(event)
                delivered += 1
            except Exception:
                self.logger.exception("listener_failed", extra={"event_name": name})
        return delivered
