from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound="ResourceBase")

ResourceId = int | str


class ResourceBase(BaseModel):
    """Backend payloads: unknown fields are tolerated."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Role(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    REVIEWER = "REVIEWER"
    VIEWER = "VIEWER"


class MediaType(StrEnum):
    VIDEO = "video"
    AUDIO = "audio"
    APPLICATION = "application"
    TEXT = "text"


class Workspace(ResourceBase):
    id: ResourceId
    name: str
    created_at: str | None = None


class Member(ResourceBase):
    id: ResourceId | None = None
    user_id: ResourceId | None = Field(
        default=None,
        validation_alias=AliasChoices("user_id", "userId"),
    )
    role: str | None = None
    username: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    @property
    def key(self) -> ResourceId | None:
        return self.id if self.id is not None else self.user_id

    @property
    def is_owner(self) -> bool:
        return str(self.role or "").strip().upper() == Role.OWNER.value


class MediaItem(ResourceBase):
    id: ResourceId
    original_filename: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    created_at: str | None = None


class Document(ResourceBase):
    id: ResourceId
    workspace_id: ResourceId | None = None
    title: str | None = None
    content: str | None = None
    media_id: ResourceId | None = None
    doc_type: str | None = None
    version: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Comment(ResourceBase):
    id: ResourceId
    target_type: str
    target_id: ResourceId
    body: str
    created_at: str | None = None
    author_id: ResourceId | None = None
    user_id: ResourceId | None = None
    username: str | None = None

    @property
    def author(self) -> str | None:
        raw = self.author_id if self.author_id is not None else self.user_id
        if raw is None:
            return None
        return str(raw)


class RecentWorkspace(ResourceBase):
    id: ResourceId
    name: str | None = None
    role: str | None = None


class Profile(ResourceBase):
    id: ResourceId | None = None
    username: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    recent_workspaces: list[RecentWorkspace] = Field(default_factory=list)

    @field_validator("recent_workspaces", mode="before")
    @classmethod
    def default_recent_workspaces(cls, value: Any) -> Any:
        return [] if value is None else value


class TokenResponse(ResourceBase):
    access_token: str
    token_type: str = "bearer"


def normalize_id(value: object) -> str:
    return "" if value is None else str(value)


def extract_items(payload: Any) -> list[Any]:
    """Accept a bare list or an ``{"items": [...]}`` envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get("items")
        if isinstance(items, list):
            return items
    return []


def parse_items(model_cls: type[TModel], rows: Iterable[Any]) -> list[TModel]:
    parsed: list[TModel] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            parsed.append(model_cls.model_validate(row))
        except ValidationError as exc:
            logger.debug("skip invalid %s row: %s", model_cls.__name__, exc)
            continue
    return parsed
