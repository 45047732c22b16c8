from __future__ import annotations

import pytest

from avidcore.media_cache import MediaCache
from avidcore.rbac import AccessDenied
from avidcore.resources import MediaService
from avidcore.resources.media import extract_media_id


@pytest.fixture
def media(api) -> MediaService:
    return MediaService(api)


def test_list_media_sends_paging_and_type(media, fake_session, logged_in) -> None:
    fake_session.add(
        "GET",
        "/workspaces/3/media/",
        payload={"items": [{"id": 1, "original_filename": "intro.mp4", "mime_type": "video/mp4"}]},
    )

    items = media.list_media(3, media_type="video", page=2, page_size=10)

    assert [item.original_filename for item in items] == ["intro.mp4"]
    assert fake_session.calls[0]["params"] == {"page": 2, "page_size": 10, "type": "video"}


def test_list_media_without_type_filter(media, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/3/media/", payload=[])

    assert media.list_media(3) == []
    assert fake_session.calls[0]["params"] == {"page": 1, "page_size": 24}


def test_list_media_rejects_bad_paging(media) -> None:
    with pytest.raises(ValueError):
        media.list_media(3, page=0)


def test_upload_sends_multipart_file(media, fake_session, logged_in, tmp_path) -> None:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x01")
    fake_session.add("POST", "/workspaces/3/media/upload", payload={"item": {"id": 77}})

    media_id = media.upload(3, path, role="EDITOR")

    assert media_id == 77
    name, _, mime_type = fake_session.calls[0]["files"]["file"]
    assert name == "clip.mp4"
    assert mime_type == "video/mp4"


def test_upload_denied_for_viewer(media, fake_session, logged_in, tmp_path) -> None:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"x")

    with pytest.raises(AccessDenied):
        media.upload(3, path, role="VIEWER")

    assert fake_session.calls == []


def test_upload_missing_file(media, logged_in, tmp_path) -> None:
    with pytest.raises(ValueError):
        media.upload(3, tmp_path / "missing.bin", role="OWNER")


def test_rename_puts_trimmed_name(media, fake_session, logged_in) -> None:
    fake_session.add("PUT", "/workspaces/3/media/8", payload={"id": 8})

    assert media.rename(3, 8, "  final.mov ", role="EDITOR") == "final.mov"
    assert fake_session.calls[0]["json"] == {"original_filename": "final.mov"}


def test_rename_requires_edit_role_and_name(media, logged_in) -> None:
    with pytest.raises(AccessDenied):
        media.rename(3, 8, "x", role="REVIEWER")
    with pytest.raises(ValueError):
        media.rename(3, 8, "  ", role="EDITOR")


def test_delete_requires_admin_and_evicts_cache(api, events, fake_session, logged_in, tmp_path) -> None:
    cache = MediaCache(api, directory=tmp_path / "media", events=events)
    media = MediaService(api, cache=cache)
    fake_session.add("GET", "/workspaces/3/media/8/download", content=b"data")
    fake_session.add("DELETE", "/workspaces/3/media/8", status_code=204)
    cache.get_or_fetch_url(3, 8)

    with pytest.raises(AccessDenied):
        media.delete(3, 8, role="EDITOR")
    media.delete(3, 8, role="ADMIN")

    assert cache.get_cached_url(3, 8) is None
    assert fake_session.paths("DELETE") == ["/workspaces/3/media/8"]
    cache.close()


def test_download_returns_bytes(media, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/3/media/8/download", content=b"raw-bytes")

    assert media.download(3, 8) == b"raw-bytes"


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"id": 5}, 5),
        ({"media_id": "m-9"}, "m-9"),
        ({"item": {"id": 11}}, 11),
        ({"id": True, "media_id": 4}, 4),
        ({"id": "  "}, None),
        ([1, 2], None),
        (None, None),
    ],
)
def test_extract_media_id(payload: object, expected: object) -> None:
    assert extract_media_id(payload) == expected
