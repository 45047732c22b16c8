from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from avidcore.api import ApiClient, ApiError
from avidcore.schemas import (
    Member,
    Profile,
    RecentWorkspace,
    ResourceId,
    extract_items,
    normalize_id,
    parse_items,
)

from .media import MediaService

logger = logging.getLogger(__name__)

PROFILE_PATH = "/users/me"
EDITABLE_FIELDS = ("first_name", "last_name", "username", "bio", "date_of_birth")

_DOWNLOAD_URL_PATTERN = re.compile(r"/workspaces/([^/]+)/media/([^/]+)/download\b")


@dataclass(slots=True, frozen=True)
class AvatarMediaRef:
    workspace_id: str
    media_id: str

    def as_value(self) -> str:
        return f"media:{self.workspace_id}:{self.media_id}"


@dataclass(slots=True, frozen=True)
class WorkspaceRoleInfo:
    workspace_id: str
    role: str | None


def parse_avatar_media_ref(value: str | None) -> AvatarMediaRef | None:
    """Recognize ``media:<ws>:<id>`` and ``/workspaces/<ws>/media/<id>/download``."""
    trimmed = str(value or "").strip()
    if not trimmed:
        return None

    if trimmed.startswith("media:"):
        parts = trimmed.split(":")
        if len(parts) != 3 or not parts[1] or not parts[2]:
            return None
        return AvatarMediaRef(workspace_id=parts[1], media_id=parts[2])

    match = _DOWNLOAD_URL_PATTERN.search(trimmed)
    if match is None:
        return None
    return AvatarMediaRef(workspace_id=match.group(1), media_id=match.group(2))


def initials(profile: Profile | None) -> str:
    first = str((profile.first_name if profile else None) or "").strip()
    last = str((profile.last_name if profile else None) or "").strip()
    username = str((profile.username if profile else None) or "").strip()

    pair = f"{first[:1]}{last[:1]}".strip()
    if pair:
        return pair.upper()
    if username:
        return username[0].upper()
    return "U"


def full_name(profile: Profile | None) -> str:
    if profile is None:
        return ""
    return f"{(profile.first_name or '').strip()} {(profile.last_name or '').strip()}".strip()


def as_date_value(value: str | None) -> str:
    """ISO date or datetime to ``YYYY-MM-DD``."""
    if not value:
        return ""
    return str(value)[:10]


def clean_profile_fields(fields: Mapping[str, str | None]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for key in EDITABLE_FIELDS:
        value = fields.get(key)
        if isinstance(value, str) and value.strip():
            cleaned[key] = value.strip()
    return cleaned


class ProfileService:
    def __init__(self, api: ApiClient, *, media: MediaService | None = None) -> None:
        self.api = api
        self.media = media or MediaService(api)

    def get_my_profile(self) -> Profile:
        return Profile.model_validate(self.api.get_json(PROFILE_PATH))

    def update_my_profile(self, fields: Mapping[str, str | None]) -> Profile | None:
        cleaned = clean_profile_fields(fields)
        if not cleaned:
            logger.info("profile update skipped: nothing to update")
            return None
        return self._patch(cleaned)

    def set_avatar(self, ref: AvatarMediaRef) -> Profile:
        return self._patch({"avatar_url": ref.as_value()})

    def upload_avatar(
        self,
        path: str | Path,
        *,
        workspace_id: ResourceId | None,
        profile: Profile | None = None,
    ) -> Profile:
        target = workspace_id
        if target is None and profile is not None and profile.recent_workspaces:
            target = profile.recent_workspaces[0].id
        if target is None:
            raise ValueError("Select a workspace to upload a profile photo")

        media_id = self.media.upload_file(target, path)
        if media_id is None:
            raise ValueError("Upload succeeded, but backend did not return a media id")
        return self.set_avatar(AvatarMediaRef(workspace_id=str(target), media_id=str(media_id)))

    def resolve_workspace_roles(
        self,
        user_id: str | None,
        recent: Iterable[RecentWorkspace],
    ) -> list[WorkspaceRoleInfo]:
        """Role per recent workspace; looks up membership when the profile omits it."""
        results: list[WorkspaceRoleInfo] = []
        for workspace in recent:
            workspace_id = normalize_id(workspace.id)
            if workspace.role or not user_id:
                results.append(WorkspaceRoleInfo(workspace_id, workspace.role or None))
                continue

            try:
                payload = self.api.get_json(f"/workspaces/{workspace_id}/members")
            except ApiError as exc:
                logger.info("role lookup failed workspace_id=%s: %s", workspace_id, exc)
                results.append(WorkspaceRoleInfo(workspace_id, None))
                continue

            role: str | None = None
            for member in parse_items(Member, extract_items(payload)):
                member_user = member.user_id if member.user_id is not None else member.id
                if normalize_id(member_user) == normalize_id(user_id):
                    role = str(member.role) if member.role else None
                    break
            results.append(WorkspaceRoleInfo(workspace_id, role))
        return results

    def _patch(self, body: dict[str, str]) -> Profile:
        payload = self.api.request_json("PATCH", PROFILE_PATH, auth=True, json_body=body)
        logger.info("profile updated fields=%s", ",".join(sorted(body)))
        return Profile.model_validate(payload)
