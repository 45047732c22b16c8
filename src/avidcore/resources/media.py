from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any

from avidcore.api import ApiClient
from avidcore.media_cache import MediaCache
from avidcore.rbac import can_delete_content, can_edit_content, require
from avidcore.schemas import MediaItem, MediaType, ResourceId, extract_items, parse_items

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24


class MediaService:
    def __init__(self, api: ApiClient, *, cache: MediaCache | None = None) -> None:
        self.api = api
        self.cache = cache

    def list_media(
        self,
        workspace_id: ResourceId,
        *,
        media_type: MediaType | str | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[MediaItem]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        params: dict[str, object] = {"page": page, "page_size": page_size}
        if media_type:
            params["type"] = str(media_type)

        payload = self.api.get_json(f"/workspaces/{workspace_id}/media/", params=params)
        items = parse_items(MediaItem, extract_items(payload))
        logger.info(
            "listed media workspace_id=%s type=%s page=%d count=%d",
            workspace_id,
            media_type,
            page,
            len(items),
        )
        return items

    def upload(self, workspace_id: ResourceId, path: str | Path, *, role: str | None) -> ResourceId | None:
        require(can_edit_content(role), "You do not have permission to upload in this workspace.")
        return self.upload_file(workspace_id, path)

    def upload_file(self, workspace_id: ResourceId, path: str | Path) -> ResourceId | None:
        """Upload without role gating; returns the new media id when the backend reports one."""
        file_path = Path(path)
        if not file_path.is_file():
            raise ValueError(f"not a file: {file_path}")

        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        with file_path.open("rb") as fp:
            payload = self.api.request_json(
                "POST",
                f"/workspaces/{workspace_id}/media/upload",
                auth=True,
                files={"file": (file_path.name, fp, mime_type)},
            )
        media_id = extract_media_id(payload)
        logger.info(
            "uploaded media workspace_id=%s file=%s media_id=%s",
            workspace_id,
            file_path.name,
            media_id,
        )
        return media_id

    def rename(
        self,
        workspace_id: ResourceId,
        media_id: ResourceId,
        new_name: str,
        *,
        role: str | None,
    ) -> str:
        require(can_edit_content(role), "You do not have permission to edit media")
        trimmed = new_name.strip()
        if not trimmed:
            raise ValueError("file name must not be empty")

        self.api.request(
            "PUT",
            f"/workspaces/{workspace_id}/media/{media_id}",
            auth=True,
            json_body={"original_filename": trimmed},
        )
        return trimmed

    def delete(self, workspace_id: ResourceId, media_id: ResourceId, *, role: str | None) -> None:
        require(can_delete_content(role), "You do not have permission to delete media")
        self.api.request("DELETE", f"/workspaces/{workspace_id}/media/{media_id}", auth=True)
        if self.cache is not None:
            self.cache.remove(workspace_id, media_id)
        logger.info("deleted media workspace_id=%s media_id=%s", workspace_id, media_id)

    def download(self, workspace_id: ResourceId, media_id: ResourceId) -> bytes:
        response = self.api.request(
            "GET",
            f"/workspaces/{workspace_id}/media/{media_id}/download",
            auth=True,
        )
        return response.content


def extract_media_id(payload: Any) -> ResourceId | None:
    """Media id from an upload response: ``id``, ``media_id`` or ``item.id``."""
    if not isinstance(payload, dict):
        return None
    item = payload.get("item")
    candidates = [
        payload.get("id"),
        payload.get("media_id"),
        item.get("id") if isinstance(item, dict) else None,
    ]
    for candidate in candidates:
        if candidate is None or isinstance(candidate, bool):
            continue
        if isinstance(candidate, (int, str)) and str(candidate).strip():
            return candidate
    return None
