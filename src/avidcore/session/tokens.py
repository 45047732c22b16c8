from __future__ import annotations

import time
from typing import Any

import jwt

_USER_ID_CLAIMS = ("user_id", "userId", "sub", "id")
_EMPTY_MARKERS = {"", "undefined", "null"}


def decode_jwt_payload(token: str) -> dict[str, Any] | None:
    """Read JWT claims without verifying the signature.

    The backend owns verification; the client only needs the claims to drive
    UI state such as the current user id and expiry.
    """
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def user_id_from_token(token: str | None) -> str | None:
    if not token:
        return None
    payload = decode_jwt_payload(token)
    if payload is None:
        return None

    for claim in _USER_ID_CLAIMS:
        value = payload.get(claim)
        if value is None:
            continue
        text = str(value)
        if text not in _EMPTY_MARKERS:
            return text
    return None


def is_token_expired(token: str, now: float | None = None) -> bool:
    payload = decode_jwt_payload(token)
    if payload is None:
        return True

    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return False

    current = time.time() if now is None else now
    return current >= exp
