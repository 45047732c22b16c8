from __future__ import annotations

import logging

from avidcore.api import ApiClient, ApiError
from avidcore.rbac import can_delete_content, can_edit_content, require
from avidcore.schemas import (
    Document,
    MediaItem,
    MediaType,
    ResourceId,
    extract_items,
    normalize_id,
    parse_items,
)

from .media import MediaService

logger = logging.getLogger(__name__)

DOCUMENT_FILE_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "text/plain",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
DOCUMENT_FILES_PAGE_SIZE = 100
UNTITLED = "Untitled"


class DocumentService:
    def __init__(self, api: ApiClient, *, media: MediaService | None = None) -> None:
        self.api = api
        self.media = media or MediaService(api)

    def list_documents(self, workspace_id: ResourceId) -> list[Document]:
        payload = self.api.get_json(f"/workspaces/{workspace_id}/documents")
        return parse_items(Document, extract_items(payload))

    def list_document_files(self, workspace_id: ResourceId) -> list[MediaItem]:
        """Uploaded files that read as documents (pdf, plain text, docx)."""
        collected: list[MediaItem] = []
        errors: list[ApiError] = []
        for media_type in (MediaType.APPLICATION, MediaType.TEXT):
            try:
                collected.extend(
                    self.media.list_media(
                        workspace_id,
                        media_type=media_type,
                        page_size=DOCUMENT_FILES_PAGE_SIZE,
                    )
                )
            except ApiError as exc:
                logger.warning("document files listing failed type=%s: %s", media_type, exc)
                errors.append(exc)

        if not collected and errors:
            raise errors[0]

        by_id: dict[str, MediaItem] = {}
        for item in collected:
            by_id[normalize_id(item.id)] = item
        return [item for item in by_id.values() if (item.mime_type or "") in DOCUMENT_FILE_MIME_TYPES]

    def get_document(self, workspace_id: ResourceId, document_id: ResourceId) -> Document:
        payload = self.api.get_json(f"/workspaces/{workspace_id}/documents/{document_id}")
        return Document.model_validate(payload)

    def create_document(
        self,
        workspace_id: ResourceId,
        *,
        title: str,
        content: str,
        role: str | None,
    ) -> Document:
        require(can_edit_content(role), "You do not have permission to create documents")
        trimmed_title = title.strip()
        trimmed_content = content.strip()
        if not trimmed_title:
            raise ValueError("Title cannot be empty")
        if not trimmed_content:
            raise ValueError("Content cannot be empty")

        payload = self.api.request_json(
            "POST",
            f"/workspaces/{workspace_id}/documents",
            auth=True,
            json_body={"title": trimmed_title, "content": trimmed_content},
        )
        document = Document.model_validate(payload)
        logger.info("created document workspace_id=%s document_id=%s", workspace_id, document.id)
        return document

    def update_document(
        self,
        workspace_id: ResourceId,
        document_id: ResourceId,
        *,
        title: str,
        content: str,
        role: str | None,
    ) -> Document:
        require(can_edit_content(role), "You do not have permission to edit documents")
        trimmed_title = title.strip() or UNTITLED
        trimmed_content = content.strip()
        if not trimmed_content:
            raise ValueError("Content cannot be empty")

        logger.debug(
            "document save payload title=%s content_chars=%d",
            trimmed_title,
            len(trimmed_content),
        )
        payload = self.api.request_json(
            "PUT",
            f"/workspaces/{workspace_id}/documents/{document_id}",
            auth=True,
            json_body={"title": trimmed_title, "content": trimmed_content},
        )
        return Document.model_validate(payload)

    def delete_document(
        self,
        workspace_id: ResourceId,
        document_id: ResourceId,
        *,
        role: str | None,
    ) -> None:
        require(can_delete_content(role), "You do not have permission to delete documents")
        self.api.request("DELETE", f"/workspaces/{workspace_id}/documents/{document_id}", auth=True)
        logger.info("deleted document workspace_id=%s document_id=%s", workspace_id, document_id)
