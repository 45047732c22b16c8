from __future__ import annotations

import logging

from avidcore.api import ApiClient
from avidcore.rbac import can_delete_comment, require
from avidcore.schemas import Comment, ResourceId, extract_items, normalize_id, parse_items

logger = logging.getLogger(__name__)


def filter_comments(
    comments: list[Comment],
    *,
    target_type: str | None = None,
    target_id: ResourceId | None = None,
) -> list[Comment]:
    selected = comments
    if target_type is not None:
        wanted = target_type.lower()
        selected = [comment for comment in selected if comment.target_type.lower() == wanted]
    if target_id is not None:
        selected = [
            comment
            for comment in selected
            if normalize_id(comment.target_id) == normalize_id(target_id)
        ]
    return selected


class CommentService:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def list_comments(
        self,
        workspace_id: ResourceId,
        *,
        target_type: str | None = None,
        target_id: ResourceId | None = None,
    ) -> list[Comment]:
        payload = self.api.get_json(f"/workspaces/{workspace_id}/comments")
        comments = parse_items(Comment, extract_items(payload))
        return filter_comments(comments, target_type=target_type, target_id=target_id)

    def post_comment(
        self,
        workspace_id: ResourceId,
        *,
        target_type: str,
        target_id: ResourceId,
        body: str,
    ) -> Comment:
        text = body.strip()
        if not text:
            raise ValueError("comment body must not be empty")

        payload = self.api.request_json(
            "POST",
            f"/workspaces/{workspace_id}/comments",
            auth=True,
            json_body={"target_type": target_type, "target_id": target_id, "body": text},
        )
        comment = Comment.model_validate(payload)
        logger.info(
            "posted comment workspace_id=%s target=%s:%s comment_id=%s",
            workspace_id,
            target_type,
            target_id,
            comment.id,
        )
        return comment

    def delete_comment(
        self,
        workspace_id: ResourceId,
        comment: Comment,
        *,
        role: str | None,
        user_id: str | None,
    ) -> None:
        is_author = user_id is not None and comment.author == normalize_id(user_id)
        require(
            can_delete_comment(role, is_author=is_author),
            "You do not have permission to delete this comment",
        )
        self.api.request("DELETE", f"/workspaces/{workspace_id}/comments/{comment.id}", auth=True)
        logger.info("deleted comment workspace_id=%s comment_id=%s", workspace_id, comment.id)

    def find_comment(self, workspace_id: ResourceId, comment_id: ResourceId) -> Comment | None:
        for comment in self.list_comments(workspace_id):
            if normalize_id(comment.id) == normalize_id(comment_id):
                return comment
        return None
