"""Avid Content Core client package."""

from .config import AppConfig, load_config
from .context import ClientContext, build_context
from .schemas import Comment, Document, MediaItem, Member, Profile, Role, Workspace

__all__ = [
    "AppConfig",
    "ClientContext",
    "Comment",
    "Document",
    "MediaItem",
    "Member",
    "Profile",
    "Role",
    "Workspace",
    "build_context",
    "load_config",
]
