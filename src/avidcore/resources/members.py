from __future__ import annotations

import logging
from typing import Any

from avidcore.api import ApiClient, ApiError
from avidcore.rbac import can_assign_owner, can_manage_members, normalize_role, require
from avidcore.schemas import Member, ResourceId, Role, extract_items, normalize_id, parse_items

logger = logging.getLogger(__name__)

MANAGE_DENIED = "You do not have permission to manage members"


class MemberService:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def list_members(self, workspace_id: ResourceId) -> list[Member]:
        payload = self.api.get_json(f"/workspaces/{workspace_id}/members")
        return parse_items(Member, extract_items(payload))

    def add_member(
        self,
        workspace_id: ResourceId,
        *,
        user_id: str,
        role: str = Role.VIEWER,
        actor_role: str | None,
    ) -> Member:
        require(can_manage_members(actor_role), MANAGE_DENIED)
        uid = str(user_id).strip()
        if not uid:
            raise ValueError("user_id must not be empty")
        target_role = _validate_role(role)
        if target_role == Role.OWNER:
            require(can_assign_owner(actor_role), "Only OWNER can assign OWNER")

        payload = self.api.request_json(
            "POST",
            f"/workspaces/{workspace_id}/members",
            auth=True,
            json_body={"user_id": uid, "role": target_role},
        )
        logger.info("added member workspace_id=%s user_id=%s role=%s", workspace_id, uid, target_role)
        return Member.model_validate(payload or {"user_id": uid, "role": target_role})

    def update_role(
        self,
        workspace_id: ResourceId,
        member: Member,
        role: str,
        *,
        actor_role: str | None,
    ) -> Member:
        require(can_manage_members(actor_role), MANAGE_DENIED)
        target_role = _validate_role(role)
        if target_role == Role.OWNER:
            require(can_assign_owner(actor_role), "Only OWNER can assign OWNER")
        if member.is_owner:
            require(can_assign_owner(actor_role), "Only OWNER can change OWNER")

        key = _member_key(member)
        user_key = member.user_id if member.user_id is not None else key
        body = {"role": target_role, "user_id": member.user_id}

        # Backends differ in how members are addressed; try each in turn.
        attempts: list[tuple[str, dict[str, object] | None]] = [
            (f"/workspaces/{workspace_id}/members/{key}", body),
            (f"/workspaces/{workspace_id}/members/{user_key}", body),
            (f"/workspaces/{workspace_id}/members", {"user_id": user_key, "role": target_role}),
        ]
        payload = self._try_each("PUT", _unique_attempts(attempts))
        updated = Member.model_validate(payload) if isinstance(payload, dict) else Member()
        logger.info("updated member role workspace_id=%s member=%s role=%s", workspace_id, key, target_role)
        return member.model_copy(update={"role": updated.role or target_role})

    def remove_member(
        self,
        workspace_id: ResourceId,
        member: Member,
        *,
        actor_role: str | None,
    ) -> None:
        require(can_manage_members(actor_role), MANAGE_DENIED)
        if member.is_owner:
            require(can_assign_owner(actor_role), "Only OWNER can remove OWNER")

        key = _member_key(member)
        user_key = member.user_id if member.user_id is not None else key
        attempts: list[tuple[str, dict[str, object] | None]] = [
            (f"/workspaces/{workspace_id}/members/{key}", None),
            (f"/workspaces/{workspace_id}/members/{user_key}", None),
        ]
        self._try_each("DELETE", _unique_attempts(attempts))
        logger.info("removed member workspace_id=%s member=%s", workspace_id, key)

    def _try_each(
        self,
        method: str,
        attempts: list[tuple[str, dict[str, object] | None]],
    ) -> Any:
        """First successful response among the attempts; a 401 stops the chain."""
        last_error: ApiError | None = None
        for path, json_body in attempts:
            try:
                return self.api.request_json(method, path, auth=True, json_body=json_body)
            except ApiError as exc:
                if exc.status == 401:
                    raise
                logger.info("member request failed method=%s path=%s status=%s", method, path, exc.status)
                last_error = exc

        if last_error is None:
            raise ApiError("Member request failed", 0)
        raise last_error

    def find_member(self, workspace_id: ResourceId, member_key: str) -> Member | None:
        """Look up a member by membership id or user id."""
        for member in self.list_members(workspace_id):
            if member_key in {normalize_id(member.id), normalize_id(member.user_id)}:
                return member
        return None


def _validate_role(role: str) -> Role:
    normalized = normalize_role(role)
    try:
        return Role(normalized)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in Role)
        raise ValueError(f"unknown role: {role} (expected one of {allowed})") from exc


def _member_key(member: Member) -> ResourceId:
    key = member.key
    if key is None:
        raise ValueError("Member id missing")
    return key


def _unique_attempts(
    attempts: list[tuple[str, dict[str, object] | None]],
) -> list[tuple[str, dict[str, object] | None]]:
    seen: set[str] = set()
    unique: list[tuple[str, dict[str, object] | None]] = []
    for path, body in attempts:
        if path in seen:
            continue
        seen.add(path)
        unique.append((path, body))
    return unique
