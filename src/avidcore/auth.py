from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pydantic import ValidationError

from avidcore.api import ApiClient, ApiError
from avidcore.events import AUTH_CHANGE, EventBus
from avidcore.schemas import TokenResponse
from avidcore.session import SessionStore, is_token_expired, user_id_from_token

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/token"


@dataclass(slots=True, frozen=True)
class AuthState:
    is_authenticated: bool
    token: str | None = None
    user_id: str | None = None


class AuthManager:
    def __init__(
        self,
        *,
        api: ApiClient,
        store: SessionStore,
        events: EventBus | None = None,
    ) -> None:
        self.api = api
        self.store = store
        self.events = events

    def login(self, username: str, password: str) -> AuthState:
        username = username.strip()
        if not username:
            raise ValueError("username must not be empty")
        if not password:
            raise ValueError("password must not be empty")

        payload = self.api.request_json(
            "POST",
            TOKEN_PATH,
            data={"username": username, "password": password},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        try:
            token = TokenResponse.model_validate(payload).access_token
        except ValidationError as exc:
            raise ApiError("Login response did not include an access token", 200, payload) from exc

        self.store.set_token(token)
        self.store.pop_session_expired()
        logger.info("login succeeded username=%s", username)
        if self.events is not None:
            self.events.emit(AUTH_CHANGE)
        return self.check_auth()

    def logout(self) -> None:
        self.store.clear_token()
        self.store.clear_workspace_id()
        logger.info("logged out")

    def check_auth(self) -> AuthState:
        token = self.store.get_token()
        if not token:
            return AuthState(is_authenticated=False)

        if is_token_expired(token):
            logger.info("stored token expired; clearing session")
            self.store.clear_token()
            self.store.clear_workspace_id()
            self.store.mark_session_expired()
            return AuthState(is_authenticated=False)

        return AuthState(
            is_authenticated=True,
            token=token,
            user_id=user_id_from_token(token),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.check_auth().is_authenticated

    @property
    def token(self) -> str | None:
        return self.check_auth().token

    @property
    def user_id(self) -> str | None:
        return self.check_auth().user_id


class ExpiryWatcher:
    """Re-checks the stored token on a fixed interval in a daemon thread."""

    def __init__(self, auth: AuthManager, *, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.auth = auth
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="avidcore-expiry", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def tick(self) -> AuthState:
        return self.auth.check_auth()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.tick()
            except Exception:
                logger.exception("token expiry check failed")
