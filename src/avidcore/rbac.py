"""Client-side role gating.

These checks mirror the backend's workspace permissions so the client can
refuse obviously forbidden actions early. The backend remains the authority.
"""

from __future__ import annotations

from avidcore.schemas import Role

_CONTENT_EDITORS = frozenset({Role.OWNER, Role.ADMIN, Role.EDITOR})
_CONTENT_DELETERS = frozenset({Role.OWNER, Role.ADMIN})
_MEMBER_MANAGERS = frozenset({Role.OWNER, Role.ADMIN})


class AccessDenied(Exception):
    """Action refused by client-side role gating."""


def normalize_role(role: str | None) -> str:
    return str(role or "").strip().upper()


def can_edit_content(role: str | None) -> bool:
    return normalize_role(role) in _CONTENT_EDITORS


def can_delete_content(role: str | None) -> bool:
    return normalize_role(role) in _CONTENT_DELETERS


def can_manage_members(role: str | None) -> bool:
    return normalize_role(role) in _MEMBER_MANAGERS


def can_assign_owner(role: str | None) -> bool:
    return normalize_role(role) == Role.OWNER


def can_delete_comment(role: str | None, *, is_author: bool) -> bool:
    if is_author:
        return True
    return can_delete_content(role)


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise AccessDenied(message)
