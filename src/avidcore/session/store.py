from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from avidcore.events import AUTH_CHANGE, WORKSPACE_CHANGE, EventBus

logger = logging.getLogger(__name__)

_TOKEN_KEY = "auth_token"
_WORKSPACE_KEY = "workspace_id"
_EXPIRED_KEY = "session_expired"


class SessionStore:
    """Persistent session state kept in a small JSON file."""

    def __init__(self, path: str | Path, *, events: EventBus | None = None) -> None:
        self.path = Path(path)
        self.events = events
        self._lock = threading.Lock()

    def get_token(self) -> str | None:
        token = self._read().get(_TOKEN_KEY)
        if isinstance(token, str) and token.strip():
            return token
        return None

    def set_token(self, token: str) -> None:
        if not token.strip():
            raise ValueError("token must not be empty")
        self._update({_TOKEN_KEY: token})

    def clear_token(self) -> None:
        self._update({_TOKEN_KEY: None})
        self._emit(AUTH_CHANGE)

    def get_workspace_id(self) -> str | None:
        value = self._read().get(_WORKSPACE_KEY)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def get_workspace_id_number(self) -> int | None:
        raw = self.get_workspace_id()
        if raw is None:
            return None
        return to_int(raw)

    def set_workspace_id(self, workspace_id: int | str) -> None:
        number = to_int(workspace_id)
        value: int | str = number if number is not None else str(workspace_id)
        self._update({_WORKSPACE_KEY: value})

    def clear_workspace_id(self) -> None:
        self._update({_WORKSPACE_KEY: None})
        self._emit(WORKSPACE_CHANGE)

    def mark_session_expired(self) -> None:
        self._update({_EXPIRED_KEY: True})

    def pop_session_expired(self) -> bool:
        expired = bool(self._read().get(_EXPIRED_KEY))
        if expired:
            self._update({_EXPIRED_KEY: None})
        return expired

    def _emit(self, event: str) -> None:
        if self.events is not None:
            self.events.emit(event)

    def _read(self) -> dict[str, Any]:
        with self._lock:
            return self._read_unlocked()

    def _read_unlocked(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("session file unreadable path=%s; treating as empty", self.path)
            return {}
        if not isinstance(payload, dict):
            return {}
        return payload

    def _update(self, changes: dict[str, Any]) -> None:
        with self._lock:
            payload = self._read_unlocked()
            for key, value in changes.items():
                if value is None:
                    payload.pop(key, None)
                else:
                    payload[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def to_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)
