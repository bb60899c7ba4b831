"""Listener registry.

Listeners are kept per event kind in registration order. ``on`` returns a
handle; passing it to ``off`` is the only way to unregister, so a caller
never needs to keep a reference to the original callable around.
"""

from __future__ import annotations

import itertools
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging.logger import get_logger

logger = get_logger("dashboard.emitter")

Listener = Callable[..., Any]


@dataclass(frozen=True)
class ListenerHandle:
    kind: str
    id: int


class ListenerRegistry:
    def __init__(self):
        self._listeners: Dict[str, Dict[int, Listener]] = defaultdict(dict)
        self._once: set[int] = set()
        self._ids = itertools.count(1)

    def on(self, kind: str, listener: Listener) -> ListenerHandle:
        handle = ListenerHandle(kind, next(self._ids))
        self._listeners[kind][handle.id] = listener
        return handle

    def once(self, kind: str, listener: Listener) -> ListenerHandle:
        handle = self.on(kind, listener)
        self._once.add(handle.id)
        return handle

    def off(self, handle: ListenerHandle) -> bool:
        self._once.discard(handle.id)
        listeners = self._listeners.get(handle.kind)
        if not listeners or handle.id not in listeners:
            return False
        del listeners[handle.id]
        if not listeners:
            del self._listeners[handle.kind]
        return True

    def emit(self, kind: str, *args: Any) -> int:
        """Call every listener for ``kind``; returns how many were called.

        A listener that raises is logged and does not stop the others.
        """
        listeners = self._listeners.get(kind)
        if not listeners:
            return 0
        called = 0
        for listener_id, listener in list(listeners.items()):
            if listener_id in self._once:
                self.off(ListenerHandle(kind, listener_id))
            try:
                listener(*args)
            except Exception:
                logger.exception("listener_failed", extra={"kind": kind})
            called += 1
        return called

    def clear(self, kind: Optional[str] = None) -> None:
        if kind is None:
            self._listeners.clear()
            self._once.clear()
            return
        for listener_id in self._listeners.pop(kind, {}):
            self._once.discard(listener_id)

    def listener_count(self, kind: str) -> int:
        return len(self._listeners.get(kind, {}))
