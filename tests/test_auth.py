from __future__ import annotations

import pytest

from avidcore.api import ApiError
from avidcore.auth import AuthManager, ExpiryWatcher
from avidcore.events import AUTH_CHANGE


@pytest.fixture
def auth(api, store, events) -> AuthManager:
    return AuthManager(api=api, store=store, events=events)


def test_login_stores_token_and_emits_auth_change(auth, store, events, fake_session, make_token) -> None:
    token = make_token(user_id=42)
    fake_session.add("POST", "/auth/token", payload={"access_token": token, "token_type": "bearer"})
    seen: list[str] = []
    events.subscribe(AUTH_CHANGE, lambda: seen.append(AUTH_CHANGE))
    store.mark_session_expired()

    state = auth.login("  alice ", "secret")

    assert state.is_authenticated is True
    assert state.user_id == "42"
    assert store.get_token() == token
    assert store.pop_session_expired() is False
    assert seen == [AUTH_CHANGE]

    call = fake_session.calls[0]
    assert call["data"] == {"username": "alice", "password": "secret"}
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_login_rejects_bad_credentials(auth, store, fake_session) -> None:
    fake_session.add("POST", "/auth/token", status_code=400, payload={"detail": "Incorrect username or password"})

    with pytest.raises(ApiError) as excinfo:
        auth.login("alice", "wrong")

    assert str(excinfo.value) == "Incorrect username or password"
    assert store.get_token() is None


def test_login_without_access_token_in_response(auth, store, fake_session) -> None:
    fake_session.add("POST", "/auth/token", payload={"token_type": "bearer"})

    with pytest.raises(ApiError):
        auth.login("alice", "secret")

    assert store.get_token() is None


@pytest.mark.parametrize(("username", "password"), [("", "pw"), ("   ", "pw"), ("alice", "")])
def test_login_validates_input(auth, fake_session, username: str, password: str) -> None:
    with pytest.raises(ValueError):
        auth.login(username, password)

    assert fake_session.calls == []


def test_check_auth_without_token(auth) -> None:
    state = auth.check_auth()

    assert state.is_authenticated is False
    assert state.token is None
    assert auth.user_id is None


def test_check_auth_with_valid_token(auth, logged_in) -> None:
    assert auth.is_authenticated is True
    assert auth.token == logged_in
    assert auth.user_id == "42"


def test_expired_token_clears_session(auth, store, make_token) -> None:
    store.set_token(make_token(expires_in=-10))
    store.set_workspace_id(3)

    state = auth.check_auth()

    assert state.is_authenticated is False
    assert store.get_token() is None
    assert store.get_workspace_id() is None
    assert store.pop_session_expired() is True


def test_logout_clears_token_and_workspace(auth, store, logged_in) -> None:
    store.set_workspace_id(3)

    auth.logout()

    assert store.get_token() is None
    assert store.get_workspace_id() is None
    assert store.pop_session_expired() is False


def test_expiry_watcher_tick_detects_expiry(auth, store, make_token) -> None:
    watcher = ExpiryWatcher(auth, interval_seconds=30)
    store.set_token(make_token(expires_in=-1))

    assert watcher.tick().is_authenticated is False
    assert store.pop_session_expired() is True


def test_expiry_watcher_start_and_stop(auth) -> None:
    watcher = ExpiryWatcher(auth, interval_seconds=0.01)

    watcher.start()
    watcher.start()
    watcher.stop(timeout=1.0)

    assert watcher._thread is None


def test_expiry_watcher_rejects_non_positive_interval(auth) -> None:
    with pytest.raises(ValueError):
        ExpiryWatcher(auth, interval_seconds=0)
