from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlsplit

import jwt
import pytest

from avidcore.api import ApiClient
from avidcore.events import EventBus
from avidcore.session import SessionStore

BASE_URL = "http://api.test"


class FakeResponse:
    def __init__(
        self,
        *,
        status_code: int = 200,
        payload: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if content is None:
            content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


class FakeSession:
    """Routes requests by (method, path); the last queued response repeats."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[FakeResponse | Exception | Callable[[], FakeResponse]]] = {}
        self.calls: list[dict[str, Any]] = []

    def add(
        self,
        method: str,
        path: str,
        *,
        status_code: int = 200,
        payload: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.routes.setdefault((method, path), []).append(
            FakeResponse(
                status_code=status_code,
                payload=payload,
                content=content,
                headers=headers,
            )
        )

    def add_handler(self, method: str, path: str, handler: Callable[[], FakeResponse] | Exception) -> None:
        self.routes.setdefault((method, path), []).append(handler)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        path = urlsplit(url).path
        self.calls.append({"method": method, "path": path, "url": url, **kwargs})
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"unexpected request {method} {path}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response

    def paths(self, method: str | None = None) -> list[str]:
        return [call["path"] for call in self.calls if method is None or call["method"] == method]


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def store(tmp_path, events) -> SessionStore:
    return SessionStore(tmp_path / "session.json", events=events)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def api(store, fake_session) -> ApiClient:
    return ApiClient(base_url=BASE_URL, store=store, session=fake_session)  # type: ignore[arg-type]


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make_token(user_id: int | str = 42, *, expires_in: int = 3600, **claims: Any) -> str:
        payload: dict[str, Any] = {
            "user_id": user_id,
            "sub": str(user_id),
            "exp": int(time.time()) + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, "test-secret", algorithm="HS256")

    return _make_token


@pytest.fixture
def logged_in(store, make_token) -> str:
    token = make_token()
    store.set_token(token)
    return token
