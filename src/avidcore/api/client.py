from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import requests

from avidcore.session import SessionStore

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success response from the backend."""

    def __init__(self, message: str, status: int, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body

    def __str__(self) -> str:
        return self.message


def extract_error_message(status: int, body: Any) -> str:
    if status == 401:
        return "Unauthorized (401). Please login again."
    if status == 403:
        return "Forbidden (403). You do not have permission for this action."

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str) and detail.strip():
            return detail
    if isinstance(body, str) and body.strip():
        return body
    return f"Request failed ({status})"


def safe_read_json(response: requests.Response) -> Any:
    try:
        text = response.text
    except (UnicodeDecodeError, requests.RequestException):
        text = ""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class ApiClient:
    """Thin wrapper over the backend REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        store: SessionStore,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise ValueError("base_url is empty.")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")

        self.base_url = normalized
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    def request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = False,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        merged_headers: dict[str, str] = dict(headers or {})

        if auth:
            token = self.store.get_token()
            if not token:
                # No token: fail locally instead of hitting the backend.
                logger.warning("auth required but no token method=%s path=%s", method, path)
                raise ApiError(extract_error_message(401, None), 401)
            merged_headers["Authorization"] = f"Bearer {token}"

        kwargs: dict[str, Any] = {"headers": merged_headers, "timeout": self.timeout_seconds}
        if params is not None:
            kwargs["params"] = dict(params)
        if json_body is not None:
            kwargs["json"] = json_body
        if data is not None:
            kwargs["data"] = dict(data)
        if files is not None:
            kwargs["files"] = dict(files)

        response = self.session.request(method, self.url(path), **kwargs)
        if not response.ok:
            body = safe_read_json(response)
            logger.info(
                "api request failed method=%s path=%s status=%s",
                method,
                path,
                response.status_code,
            )
            raise ApiError(extract_error_message(response.status_code, body), response.status_code, body)
        return response

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid JSON response ({response.status_code})",
                response.status_code,
                response.text,
            ) from exc

    def get_json(self, path: str, **kwargs: Any) -> Any:
        return self.request_json("GET", path, auth=True, **kwargs)
