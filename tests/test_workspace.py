from __future__ import annotations

import pytest

from avidcore.api import ApiError
from avidcore.auth import AuthManager
from avidcore.events import EventBus
from avidcore.schemas import Member
from avidcore.workspace import ROLE_LOAD_ERROR, WorkspaceContext, find_member_role


@pytest.fixture
def context(api, store, events) -> WorkspaceContext:
    auth = AuthManager(api=api, store=store, events=events)
    return WorkspaceContext(api=api, store=store, auth=auth, events=events)


def _members_payload() -> list[dict[str, object]]:
    return [
        {"id": 1, "user_id": 7, "role": "OWNER"},
        {"id": 2, "userId": 42, "role": "EDITOR"},
    ]


def test_find_member_role_matches_user_id() -> None:
    members = [Member.model_validate(row) for row in _members_payload()]

    assert find_member_role(members, "42") == "EDITOR"
    assert find_member_role(members, "7") == "OWNER"
    assert find_member_role(members, "99") is None
    assert find_member_role(members, None) is None


def test_refresh_workspaces_requires_login(context, fake_session) -> None:
    assert context.refresh_workspaces() == []
    assert fake_session.calls == []


def test_refresh_workspaces_accepts_items_envelope(context, fake_session, logged_in) -> None:
    fake_session.add(
        "GET",
        "/workspaces",
        payload={"items": [{"id": 1, "name": "Main"}, {"id": 2, "name": "Archive"}, {"bad": True}]},
    )

    workspaces = context.refresh_workspaces()

    assert [workspace.name for workspace in workspaces] == ["Main", "Archive"]
    assert context.workspaces_error is None


def test_refresh_workspaces_records_error(context, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces", status_code=500, payload={"detail": "db down"})

    assert context.refresh_workspaces() == []
    assert context.workspaces_error == "db down"


def test_select_workspace_resolves_role(context, store, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/12/members", payload=_members_payload())

    assert context.select_workspace("12") is True

    assert store.get_workspace_id_number() == 12
    assert context.workspace_id == 12
    assert context.current_user_role == "EDITOR"
    assert context.role_error is None


def test_select_workspace_rejects_non_numeric(context, store, fake_session, logged_in) -> None:
    assert context.select_workspace("abc") is False

    assert store.get_workspace_id() is None
    assert fake_session.calls == []


def test_select_none_clears_selection(context, store, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/3/members", payload=_members_payload())
    context.select_workspace(3)

    assert context.select_workspace(None) is True

    assert store.get_workspace_id() is None
    assert context.current_user_role is None


def test_role_load_failure_falls_back_to_no_role(context, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces/4/members", status_code=500)

    context.select_workspace(4)

    assert context.current_user_role is None
    assert context.role_error == ROLE_LOAD_ERROR


def test_role_is_none_when_user_not_a_member(context, fake_session, make_token, store) -> None:
    store.set_token(make_token(user_id=999))
    fake_session.add("GET", "/workspaces/5/members", payload=_members_payload())

    context.select_workspace(5)

    assert context.current_user_role is None
    assert context.role_error is None


def test_select_workspace_without_event_bus_refreshes_directly(api, store, fake_session, logged_in) -> None:
    auth = AuthManager(api=api, store=store)
    context = WorkspaceContext(api=api, store=store, auth=auth)
    fake_session.add("GET", "/workspaces/8/members", payload=_members_payload())

    context.select_workspace(8)

    assert context.current_user_role == "EDITOR"


def test_create_workspace_trims_name(context, fake_session, logged_in) -> None:
    fake_session.add("POST", "/workspaces", payload={"id": 9, "name": "Promo"})

    workspace = context.create_workspace("  Promo  ")

    assert workspace.id == 9
    assert fake_session.calls[0]["json"] == {"name": "Promo"}
    assert context.workspaces[-1].name == "Promo"


def test_create_workspace_rejects_blank_name(context, fake_session, logged_in) -> None:
    with pytest.raises(ValueError):
        context.create_workspace("   ")

    assert fake_session.calls == []


def test_create_workspace_propagates_api_error(context, fake_session, logged_in) -> None:
    fake_session.add("POST", "/workspaces", status_code=400, payload={"detail": "Name taken"})

    with pytest.raises(ApiError, match="Name taken"):
        context.create_workspace("Main")


def test_selected_workspace_looks_up_loaded_list(context, fake_session, logged_in) -> None:
    fake_session.add("GET", "/workspaces", payload=[{"id": 1, "name": "Main"}, {"id": 2, "name": "Other"}])
    fake_session.add("GET", "/workspaces/2/members", payload=[])
    context.refresh_workspaces()

    context.select_workspace(2)

    assert context.selected_workspace is not None
    assert context.selected_workspace.name == "Other"


def test_role_refreshes_on_workspace_change_event(api, store, fake_session, logged_in) -> None:
    events = EventBus()
    auth = AuthManager(api=api, store=store, events=events)
    context = WorkspaceContext(api=api, store=store, auth=auth, events=events)
    store.set_workspace_id(6)
    fake_session.add("GET", "/workspaces/6/members", payload=[{"user_id": 42, "role": "ADMIN"}])

    events.emit("workspace_change")

    assert context.current_user_role == "ADMIN"


@pytest.mark.parametrize(("raw", "expected"), [("1.0", 1), (2.0, 2), (" 7 ", 7)])
def test_select_workspace_accepts_integral_numbers(context, store, fake_session, logged_in, raw, expected) -> None:
    fake_session.add("GET", f"/workspaces/{expected}/members", payload=_members_payload())

    assert context.select_workspace(raw) is True

    assert store.get_workspace_id_number() == expected
    assert fake_session.paths() == [f"/workspaces/{expected}/members"]


@pytest.mark.parametrize("raw", ["1.5", "nan", "inf", True])
def test_select_workspace_rejects_non_integral_values(context, store, fake_session, logged_in, raw) -> None:
    assert context.select_workspace(raw) is False

    assert store.get_workspace_id() is None
    assert fake_session.calls == []
