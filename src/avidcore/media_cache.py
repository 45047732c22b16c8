from __future__ import annotations

import hashlib
import logging
import mimetypes
import tempfile
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path

from avidcore.api import ApiClient
from avidcore.events import AUTH_CHANGE, WORKSPACE_CHANGE, EventBus
from avidcore.schemas import ResourceId

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50
_BLOB_SUFFIX = ".blob"


@dataclass(slots=True)
class CacheEntry:
    url: str
    path: Path
    created_at: float
    last_access_at: float
    size_bytes: int | None = None


def cache_key(workspace_id: ResourceId, media_id: ResourceId) -> str:
    return f"{workspace_id}:{media_id}"


class MediaCache:
    """Bounded LRU cache of downloaded media, addressed by local object URLs.

    Each download is materialized as a file in a private per-instance directory
    (created under ``directory`` when given) and exposed as a ``file://`` URL.
    Revoking a URL removes the file. The directory is removed by ``close()`` or
    when the cache is garbage collected. Concurrent requests for the same media
    share a single download.
    """

    def __init__(
        self,
        api: ApiClient,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        directory: str | Path | None = None,
        events: EventBus | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self.api = api
        self.max_entries = max_entries
        base = Path(directory) if directory is not None else None
        if base is not None:
            base.mkdir(parents=True, exist_ok=True)
        self._tempdir = tempfile.TemporaryDirectory(prefix="avidcore-media-", dir=base)
        self.directory = Path(self._tempdir.name)

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, Future[str]] = {}
        self._generation = 0
        self._lock = threading.Lock()

        if events is not None:
            events.subscribe(AUTH_CHANGE, self.clear)
            events.subscribe(WORKSPACE_CHANGE, self.clear)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_cached_url(self, workspace_id: ResourceId, media_id: ResourceId) -> str | None:
        key = cache_key(workspace_id, media_id)
        with self._lock:
            entry = self._touch(key)
            return entry.url if entry is not None else None

    def get_or_fetch_url(self, workspace_id: ResourceId, media_id: ResourceId) -> str:
        key = cache_key(workspace_id, media_id)
        with self._lock:
            entry = self._touch(key)
            if entry is not None:
                logger.debug("media_cache hit key=%s", key)
                return entry.url

            future = self._inflight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future
            generation = self._generation

        if not owner:
            logger.debug("media_cache join inflight key=%s", key)
            return future.result()

        try:
            url = self._download(key, workspace_id, media_id, generation=generation)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(url)
            return url
        finally:
            with self._lock:
                if self._inflight.get(key) is future:
                    del self._inflight[key]

    def remove(self, workspace_id: ResourceId, media_id: ResourceId) -> None:
        key = cache_key(workspace_id, media_id)
        with self._lock:
            entry = self._entries.pop(key, None)
            self._inflight.pop(key, None)
        if entry is not None:
            _revoke(entry.path)

    def clear(self) -> None:
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
            self._inflight.clear()
            self._generation += 1
            generation = self._generation

        for entry in entries:
            _revoke(entry.path)
        # Downloads that finished for an older generation are not tracked.
        # Files of this or a later generation may already belong to new entries.
        for stray in self.directory.glob(f"*{_BLOB_SUFFIX}*"):
            tag = _file_generation(stray)
            if tag is None or tag < generation:
                _revoke(stray)
        logger.info("media_cache cleared entries=%d", len(entries))

    def close(self) -> None:
        self.clear()
        self._tempdir.cleanup()

    def _touch(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.last_access_at = time.time()
        self._entries.move_to_end(key)
        return entry

    def _download(
        self,
        key: str,
        workspace_id: ResourceId,
        media_id: ResourceId,
        *,
        generation: int,
    ) -> str:
        response = self.api.request(
            "GET",
            f"/workspaces/{workspace_id}/media/{media_id}/download",
            auth=True,
        )
        content = response.content
        content_type = str(response.headers.get("Content-Type") or "").split(";")[0].strip()
        suffix = (mimetypes.guess_extension(content_type) if content_type else None) or ""

        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        path = self.directory / f"{digest}.g{generation}{_BLOB_SUFFIX}{suffix}"
        path.write_bytes(content)
        url = path.as_uri()

        now = time.time()
        with self._lock:
            if generation != self._generation:
                logger.info("media_cache discard stale download key=%s", key)
                return url
            self._entries[key] = CacheEntry(
                url=url,
                path=path,
                created_at=now,
                last_access_at=now,
                size_bytes=len(content),
            )
            self._entries.move_to_end(key)
            evicted = self._evict_if_needed()

        for entry in evicted:
            _revoke(entry.path)
        logger.info("media_cache set key=%s size_bytes=%d", key, len(content))
        return url

    def _evict_if_needed(self) -> list[CacheEntry]:
        evicted: list[CacheEntry] = []
        while len(self._entries) > self.max_entries:
            key, entry = self._entries.popitem(last=False)
            logger.debug("media_cache evict key=%s", key)
            evicted.append(entry)
        return evicted


def _file_generation(path: Path) -> int | None:
    """Generation tag of ``<sha1>.g<generation>.blob[.ext]`` file names."""
    parts = path.name.split(".")
    if len(parts) < 3 or not parts[1].startswith("g"):
        return None
    try:
        return int(parts[1][1:])
    except ValueError:
        return None


def _revoke(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("failed to revoke cached media path=%s", path)
