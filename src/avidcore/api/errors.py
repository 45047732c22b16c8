from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from avidcore.session import SessionStore

from .client import ApiError

logger = logging.getLogger(__name__)


class ErrorKind(StrEnum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class HandledApiError:
    handled: bool
    kind: ErrorKind
    message: str


def handle_api_error(error: BaseException, store: SessionStore) -> HandledApiError:
    """Apply the session side effects of a failed call and classify it."""
    status = error.status if isinstance(error, ApiError) else None
    message = str(error) or "Request failed"

    if status == 401:
        store.mark_session_expired()
        store.clear_workspace_id()
        store.clear_token()
        logger.warning("session rejected by backend; cleared token and workspace")
        return HandledApiError(True, ErrorKind.UNAUTHORIZED, message)

    if status == 403:
        logger.warning("insufficient permissions: %s", message)
        return HandledApiError(True, ErrorKind.FORBIDDEN, "Insufficient permissions")

    if status == 404:
        return HandledApiError(True, ErrorKind.NOT_FOUND, message)

    logger.error("request failed: %s", message)
    return HandledApiError(False, ErrorKind.OTHER, message)
