"""Session persistence and token helpers."""

from .store import SessionStore, to_int
from .tokens import decode_jwt_payload, is_token_expired, user_id_from_token

__all__ = [
    "SessionStore",
    "decode_jwt_payload",
    "is_token_expired",
    "to_int",
    "user_id_from_token",
]
