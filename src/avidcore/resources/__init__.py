"""Workspace-scoped REST resources."""

from .comments import CommentService, filter_comments
from .documents import DocumentService
from .media import MediaService, extract_media_id
from .members import MemberService
from .profile import (
    AvatarMediaRef,
    ProfileService,
    WorkspaceRoleInfo,
    initials,
    parse_avatar_media_ref,
)

__all__ = [
    "AvatarMediaRef",
    "CommentService",
    "DocumentService",
    "MediaService",
    "MemberService",
    "ProfileService",
    "WorkspaceRoleInfo",
    "extract_media_id",
    "filter_comments",
    "initials",
    "parse_avatar_media_ref",
]
