from __future__ import annotations

from dataclasses import dataclass

import requests

from avidcore.api import ApiClient
from avidcore.auth import AuthManager, ExpiryWatcher
from avidcore.config import AppConfig
from avidcore.events import EventBus
from avidcore.media_cache import MediaCache
from avidcore.resources import (
    CommentService,
    DocumentService,
    MediaService,
    MemberService,
    ProfileService,
)
from avidcore.session import SessionStore
from avidcore.workspace import WorkspaceContext


@dataclass(slots=True)
class ClientContext:
    config: AppConfig
    events: EventBus
    store: SessionStore
    api: ApiClient
    auth: AuthManager
    expiry_watcher: ExpiryWatcher
    workspace: WorkspaceContext
    media_cache: MediaCache
    media: MediaService
    documents: DocumentService
    members: MemberService
    comments: CommentService
    profile: ProfileService

    def close(self) -> None:
        self.expiry_watcher.stop()
        self.media_cache.close()


def build_context(config: AppConfig, *, session: requests.Session | None = None) -> ClientContext:
    events = EventBus()
    store = SessionStore(config.session.resolved_path(), events=events)
    api = ApiClient(
        base_url=config.api.base_url,
        store=store,
        timeout_seconds=config.api.timeout_seconds,
        session=session,
    )
    auth = AuthManager(api=api, store=store, events=events)
    workspace = WorkspaceContext(api=api, store=store, auth=auth, events=events)
    media_cache = MediaCache(
        api,
        max_entries=config.media_cache.max_entries,
        directory=config.media_cache.resolved_directory(),
        events=events,
    )
    media = MediaService(api, cache=media_cache)
    return ClientContext(
        config=config,
        events=events,
        store=store,
        api=api,
        auth=auth,
        expiry_watcher=ExpiryWatcher(auth, interval_seconds=config.auth.check_interval_seconds),
        workspace=workspace,
        media_cache=media_cache,
        media=media,
        documents=DocumentService(api, media=media),
        members=MemberService(api),
        comments=CommentService(api),
        profile=ProfileService(api, media=media),
    )
