from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

AUTH_CHANGE = "auth_change"
WORKSPACE_CHANGE = "workspace_change"

Listener = Callable[[], None]


class EventBus:
    """In-process notifications for session changes."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(event, [])
                if listener in listeners:
                    listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        logger.debug("emit event=%s listeners=%d", event, len(listeners))
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("event listener failed event=%s", event)
