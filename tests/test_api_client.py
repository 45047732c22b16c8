from __future__ import annotations

import pytest

from avidcore.api import ApiClient, ApiError, extract_error_message


def test_url_joins_base_and_path(api) -> None:
    assert api.url("/workspaces") == "http://api.test/workspaces"
    assert api.url("users/me") == "http://api.test/users/me"


def test_constructor_validates_arguments(store) -> None:
    with pytest.raises(ValueError):
        ApiClient(base_url=" / ", store=store)
    with pytest.raises(ValueError):
        ApiClient(base_url="http://api.test", store=store, timeout_seconds=0)


def test_authenticated_request_sends_bearer_token(api, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces", payload=[{"id": 1, "name": "Main"}])

    payload = api.get_json("/workspaces")

    assert payload == [{"id": 1, "name": "Main"}]
    call = fake_session.calls[0]
    assert call["headers"]["Authorization"] == f"Bearer {logged_in}"
    assert call["timeout"] == 20.0


def test_authenticated_request_without_token_fails_locally(api, fake_session) -> None:
    with pytest.raises(ApiError) as excinfo:
        api.get_json("/workspaces")

    assert excinfo.value.status == 401
    assert excinfo.value.message == "Unauthorized (401). Please login again."
    assert fake_session.calls == []


def test_unauthenticated_request_omits_authorization(api, fake_session) -> None:
    fake_session.add("POST", "/auth/token", payload={"access_token": "t"})

    api.request_json("POST", "/auth/token", data={"username": "a", "password": "b"})

    call = fake_session.calls[0]
    assert "Authorization" not in call["headers"]
    assert call["data"] == {"username": "a", "password": "b"}
    assert "json" not in call


def test_error_detail_is_surfaced(api, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/1/documents/9", status_code=422, payload={"detail": "bad id"})

    with pytest.raises(ApiError) as excinfo:
        api.get_json("/workspaces/1/documents/9")

    assert excinfo.value.status == 422
    assert str(excinfo.value) == "bad id"
    assert excinfo.value.body == {"detail": "bad id"}


def test_plain_text_error_body(api, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces", status_code=500, content=b"Internal explosion")

    with pytest.raises(ApiError) as excinfo:
        api.get_json("/workspaces")

    assert excinfo.value.message == "Internal explosion"
    assert excinfo.value.body == "Internal explosion"


def test_empty_success_body_returns_none(api, fake_session, logged_in) -> None:
    fake_session.add("DELETE", "/workspaces/1/media/2", status_code=204)

    assert api.request_json("DELETE", "/workspaces/1/media/2", auth=True) is None


def test_invalid_json_success_body_raises(api, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces", content=b"<html>")

    with pytest.raises(ApiError) as excinfo:
        api.get_json("/workspaces")

    assert excinfo.value.status == 200


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (401, {"detail": "ignored"}, "Unauthorized (401). Please login again."),
        (403, None, "Forbidden (403). You do not have permission for this action."),
        (400, {"detail": "Name taken"}, "Name taken"),
        (400, {"detail": ["structured"]}, "Request failed (400)"),
        (502, "   ", "Request failed (502)"),
        (500, None, "Request failed (500)"),
    ],
)
def test_extract_error_message(status: int, body: object, expected: str) -> None:
    assert extract_error_message(status, body) == expected
