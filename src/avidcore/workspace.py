from __future__ import annotations

import logging

import requests

from avidcore.api import ApiClient, ApiError
from avidcore.auth import AuthManager
from avidcore.events import WORKSPACE_CHANGE, EventBus
from avidcore.schemas import (
    Member,
    ResourceId,
    Workspace,
    extract_items,
    normalize_id,
    parse_items,
)
from avidcore.session import SessionStore, to_int

logger = logging.getLogger(__name__)

ROLE_LOAD_ERROR = "Unable to load role"


def find_member_role(members: list[Member], user_id: str | None) -> str | None:
    if not user_id:
        return None
    for member in members:
        if normalize_id(member.user_id) == normalize_id(user_id):
            return str(member.role) if member.role else None
    return None


class WorkspaceContext:
    """Tracks the selected workspace and the current user's role in it."""

    def __init__(
        self,
        *,
        api: ApiClient,
        store: SessionStore,
        auth: AuthManager,
        events: EventBus | None = None,
    ) -> None:
        self.api = api
        self.store = store
        self.auth = auth
        self.events = events

        self.workspaces: list[Workspace] = []
        self.workspaces_error: str | None = None
        self.role: str | None = None
        self.role_error: str | None = None

        if events is not None:
            events.subscribe(WORKSPACE_CHANGE, self.refresh_role)

    @property
    def workspace_id(self) -> int | None:
        return self.store.get_workspace_id_number()

    @property
    def current_user_role(self) -> str | None:
        return self.role

    @property
    def selected_workspace(self) -> Workspace | None:
        workspace_id = self.workspace_id
        if workspace_id is None:
            return None
        for workspace in self.workspaces:
            if normalize_id(workspace.id) == normalize_id(workspace_id):
                return workspace
        return None

    def refresh_workspaces(self) -> list[Workspace]:
        if not self.auth.is_authenticated:
            self.workspaces = []
            return self.workspaces

        self.workspaces_error = None
        try:
            payload = self.api.get_json("/workspaces")
        except (ApiError, requests.RequestException) as exc:
            logger.warning("failed to load workspaces: %s", exc)
            self.workspaces_error = str(exc) or "Failed to load workspaces"
            return self.workspaces

        self.workspaces = parse_items(Workspace, extract_items(payload))
        logger.info("loaded workspaces count=%d", len(self.workspaces))
        return self.workspaces

    def create_workspace(self, name: str) -> Workspace:
        trimmed = name.strip()
        if not trimmed:
            raise ValueError("workspace name must not be empty")

        payload = self.api.request_json("POST", "/workspaces", auth=True, json_body={"name": trimmed})
        workspace = Workspace.model_validate(payload)
        self.workspaces.append(workspace)
        logger.info("created workspace id=%s", workspace.id)
        return workspace

    def select_workspace(self, workspace_id: ResourceId | None) -> bool:
        if workspace_id is None:
            self.role = None
            self.role_error = None
            self.store.clear_workspace_id()
            return True

        number = to_int(workspace_id)
        if number is None:
            logger.warning("ignoring non-numeric workspace id=%s", workspace_id)
            return False

        self.store.set_workspace_id(number)
        logger.info("selected workspace id=%d", number)
        if self.events is not None:
            self.events.emit(WORKSPACE_CHANGE)
        else:
            self.refresh_role()
        return True

    def refresh_role(self) -> str | None:
        if not self.auth.is_authenticated:
            self.role = None
            return None

        workspace_id = self.workspace_id
        self.role_error = None
        if workspace_id is None:
            self.role = None
            return None

        try:
            payload = self.api.get_json(f"/workspaces/{workspace_id}/members")
        except (ApiError, requests.RequestException) as exc:
            logger.warning("failed to load role workspace_id=%s: %s", workspace_id, exc)
            # Least privilege when the role is unknown.
            self.role = None
            self.role_error = ROLE_LOAD_ERROR
            return None

        members = parse_items(Member, extract_items(payload))
        self.role = find_member_role(members, self.auth.user_id)
        logger.info("resolved role workspace_id=%s role=%s", workspace_id, self.role)
        return self.role
