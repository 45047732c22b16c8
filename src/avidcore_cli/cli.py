from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import unquote, urlsplit

import requests
import typer

from avidcore import ClientContext, build_context, load_config
from avidcore.api import ApiError, ErrorKind, handle_api_error
from avidcore.auth import AuthState
from avidcore.rbac import AccessDenied
from avidcore.resources import initials
from avidcore.resources.profile import as_date_value, full_name

from .render import cell, render_table, truncate

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="Avid Content Core CLI")
workspaces_app = typer.Typer(help="Workspace commands")
media_app = typer.Typer(help="Media commands")
documents_app = typer.Typer(help="Document commands")
members_app = typer.Typer(help="Membership commands")
comments_app = typer.Typer(help="Comment commands")
profile_app = typer.Typer(help="Profile commands")
app.add_typer(workspaces_app, name="workspaces")
app.add_typer(media_app, name="media")
app.add_typer(documents_app, name="documents")
app.add_typer(members_app, name="members")
app.add_typer(comments_app, name="comments")
app.add_typer(profile_app, name="profile")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path (YAML or JSON).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info logging."),
) -> None:
    """Manage workspaces, media, documents, members and comments."""
    if verbose:
        logging.getLogger().setLevel(logging.INFO)
    try:
        config = load_config(config_path)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    client = build_context(config)
    ctx.obj = client
    ctx.call_on_close(client.close)


@app.command()
def login(
    ctx: typer.Context,
    username: str = typer.Option(..., "--username", "-u", prompt=True, help="Account username."),
    password: str = typer.Option(
        ...,
        "--password",
        "-p",
        prompt=True,
        hide_input=True,
        help="Account password.",
    ),
) -> None:
    """Exchange credentials for an access token."""
    client = _client(ctx)
    with _api_errors(client):
        state = client.auth.login(username, password)
    typer.echo(f"logged in user_id={state.user_id or '-'}")


@app.command()
def logout(ctx: typer.Context) -> None:
    """Forget the stored token and workspace."""
    _client(ctx).auth.logout()
    typer.echo("logged out")


@app.command()
def whoami(ctx: typer.Context) -> None:
    """Show the current session."""
    client = _client(ctx)
    state = client.auth.check_auth()
    if not state.is_authenticated:
        if client.store.pop_session_expired():
            typer.echo("session expired; please login again", err=True)
        else:
            typer.echo("not logged in", err=True)
        raise typer.Exit(code=1)

    workspace_id = client.workspace.workspace_id
    role = "-"
    if workspace_id is not None:
        with _api_errors(client):
            role = client.workspace.refresh_role() or "-"
    typer.echo(f"user_id={state.user_id or '-'} workspace_id={cell(workspace_id)} role={role}")


@workspaces_app.command("list")
def workspaces_list(ctx: typer.Context) -> None:
    """List workspaces visible to the current user."""
    client = _client(ctx)
    _require_login(client)
    workspaces = client.workspace.refresh_workspaces()
    if client.workspace.workspaces_error:
        typer.echo(client.workspace.workspaces_error, err=True)
        raise typer.Exit(code=1)

    selected = client.workspace.workspace_id
    rows = [
        (
            "*" if str(workspace.id) == str(selected) else "",
            str(workspace.id),
            workspace.name,
            cell(workspace.created_at),
        )
        for workspace in workspaces
    ]
    typer.echo(render_table(("", "id", "name", "created_at"), rows, empty="no workspaces found"))


@workspaces_app.command("create")
def workspaces_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name."),
    select: bool = typer.Option(False, "--select", help="Select the new workspace."),
) -> None:
    """Create a workspace."""
    client = _client(ctx)
    _require_login(client)
    with _api_errors(client):
        workspace = client.workspace.create_workspace(name)
        if select:
            client.workspace.select_workspace(workspace.id)
    typer.echo(f"created workspace id={workspace.id} name={workspace.name}")


@workspaces_app.command("select")
def workspaces_select(
    ctx: typer.Context,
    workspace_id: str | None = typer.Argument(None, help="Workspace id."),
    clear: bool = typer.Option(False, "--clear", help="Clear the selection."),
) -> None:
    """Select the active workspace."""
    client = _client(ctx)
    _require_login(client)
    if clear:
        client.workspace.select_workspace(None)
        typer.echo("workspace cleared")
        return
    if workspace_id is None:
        typer.echo("workspace id is required (or pass --clear)", err=True)
        raise typer.Exit(code=1)

    with _api_errors(client):
        if not client.workspace.select_workspace(workspace_id):
            typer.echo(f"invalid workspace id: {workspace_id}", err=True)
            raise typer.Exit(code=1)
    role = client.workspace.role or "-"
    if client.workspace.role_error:
        typer.echo(client.workspace.role_error, err=True)
    typer.echo(f"selected workspace id={client.workspace.workspace_id} role={role}")


@media_app.command("list")
def media_list(
    ctx: typer.Context,
    media_type: str | None = typer.Option(
        None,
        "--type",
        help="Mime prefix filter: video, audio, application or text.",
    ),
    page: int = typer.Option(1, "--page", min=1, help="Page number."),
    page_size: int = typer.Option(24, "--page-size", min=1, help="Items per page."),
) -> None:
    """List media in the selected workspace."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client, not_found_ok=True):
        items = client.media.list_media(
            workspace_id,
            media_type=media_type,
            page=page,
            page_size=page_size,
        )
        rows = [
            (str(item.id), cell(item.original_filename), cell(item.mime_type))
            for item in items
        ]
        typer.echo(render_table(("id", "filename", "mime_type"), rows, empty="no media found"))


@media_app.command("upload")
def media_upload(
    ctx: typer.Context,
    paths: list[Path] = typer.Argument(
        ...,
        help="Files to upload.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Upload one or more files."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    role = _current_role(client)
    uploaded = 0
    errors: list[str] = []
    for path in paths:
        try:
            client.media.upload(workspace_id, path, role=role)
        except AccessDenied as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
        except ApiError as exc:
            handled = handle_api_error(exc, client.store)
            if handled.kind == ErrorKind.UNAUTHORIZED:
                typer.echo(handled.message, err=True)
                raise typer.Exit(code=1) from exc
            errors.append(f"{path.name}: {handled.message}")
            continue
        uploaded += 1

    for error in errors:
        typer.echo(error, err=True)
    typer.echo(f"uploaded={uploaded} failed={len(errors)}")
    if errors:
        raise typer.Exit(code=1)


@media_app.command("rename")
def media_rename(
    ctx: typer.Context,
    media_id: str = typer.Argument(..., help="Media id."),
    name: str = typer.Argument(..., help="New file name."),
) -> None:
    """Rename a media item."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        new_name = client.media.rename(workspace_id, media_id, name, role=_current_role(client))
    typer.echo(f"renamed media id={media_id} name={new_name}")


@media_app.command("delete")
def media_delete(
    ctx: typer.Context,
    media_id: str = typer.Argument(..., help="Media id."),
) -> None:
    """Delete a media item."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        client.media.delete(workspace_id, media_id, role=_current_role(client))
    typer.echo(f"deleted media id={media_id}")


@media_app.command("download")
def media_download(
    ctx: typer.Context,
    media_id: str = typer.Argument(..., help="Media id."),
    output: Path = typer.Option(..., "--output", "-o", help="Destination file path."),
) -> None:
    """Download a media item to a local file."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        url = client.media_cache.get_or_fetch_url(workspace_id, media_id)
    source = Path(unquote(urlsplit(url).path))
    output.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, output)
    typer.echo(f"downloaded media id={media_id} bytes={output.stat().st_size} output={output}")


@documents_app.command("list")
def documents_list(
    ctx: typer.Context,
    files: bool = typer.Option(False, "--files", help="Also list uploaded document files."),
) -> None:
    """List text documents in the selected workspace."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    rows: list[tuple[str, str, str]] = []
    with _api_errors(client, not_found_ok=True):
        for document in client.documents.list_documents(workspace_id):
            rows.append(("document", str(document.id), truncate(document.title or "Untitled", limit=60)))
    if files:
        with _api_errors(client, not_found_ok=True):
            for item in client.documents.list_document_files(workspace_id):
                rows.append(("file", str(item.id), truncate(item.original_filename or "-", limit=60)))
    typer.echo(render_table(("kind", "id", "title"), rows, empty="no documents found"))


@documents_app.command("show")
def documents_show(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id."),
) -> None:
    """Print a document."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        document = client.documents.get_document(workspace_id, document_id)
    typer.echo(f"# {document.title or 'Untitled'}")
    typer.echo(document.content or "")


@documents_app.command("create")
def documents_create(
    ctx: typer.Context,
    title: str = typer.Option(..., "--title", help="Document title."),
    content: str = typer.Option(..., "--content", help="Document body."),
) -> None:
    """Create a text document."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        document = client.documents.create_document(
            workspace_id,
            title=title,
            content=content,
            role=_current_role(client),
        )
    typer.echo(f"created document id={document.id}")


@documents_app.command("update")
def documents_update(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id."),
    title: str = typer.Option("", "--title", help="Document title."),
    content: str = typer.Option(..., "--content", help="Document body."),
) -> None:
    """Replace a document's title and content."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        document = client.documents.update_document(
            workspace_id,
            document_id,
            title=title,
            content=content,
            role=_current_role(client),
        )
    typer.echo(f"saved document id={document.id} version={cell(document.version)}")


@documents_app.command("delete")
def documents_delete(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id."),
) -> None:
    """Delete a document."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        client.documents.delete_document(workspace_id, document_id, role=_current_role(client))
    typer.echo(f"deleted document id={document_id}")


@members_app.command("list")
def members_list(ctx: typer.Context) -> None:
    """List workspace members."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client, not_found_ok=True):
        members = client.members.list_members(workspace_id)
        rows = [
            (
                cell(member.id),
                cell(member.user_id),
                cell(member.username),
                cell(member.email),
                cell(member.role),
            )
            for member in members
        ]
        typer.echo(
            render_table(("id", "user_id", "username", "email", "role"), rows, empty="no members found")
        )


@members_app.command("add")
def members_add(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id to add."),
    role: str = typer.Option("VIEWER", "--role", help="OWNER, ADMIN, EDITOR, REVIEWER or VIEWER."),
) -> None:
    """Add a member to the selected workspace."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        member = client.members.add_member(
            workspace_id,
            user_id=user_id,
            role=role,
            actor_role=_current_role(client),
        )
    typer.echo(f"added member user_id={cell(member.user_id)} role={cell(member.role)}")


@members_app.command("set-role")
def members_set_role(
    ctx: typer.Context,
    member_key: str = typer.Argument(..., help="Membership id or user id."),
    role: str = typer.Argument(..., help="New role."),
) -> None:
    """Change a member's role."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        member = client.members.find_member(workspace_id, member_key)
        if member is None:
            typer.echo(f"member not found: {member_key}", err=True)
            raise typer.Exit(code=1)
        updated = client.members.update_role(
            workspace_id,
            member,
            role,
            actor_role=_current_role(client),
        )
    typer.echo(f"role updated member={member_key} role={cell(updated.role)}")


@members_app.command("remove")
def members_remove(
    ctx: typer.Context,
    member_key: str = typer.Argument(..., help="Membership id or user id."),
) -> None:
    """Remove a member from the selected workspace."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        member = client.members.find_member(workspace_id, member_key)
        if member is None:
            typer.echo(f"member not found: {member_key}", err=True)
            raise typer.Exit(code=1)
        client.members.remove_member(workspace_id, member, actor_role=_current_role(client))
    typer.echo(f"removed member={member_key}")


@comments_app.command("list")
def comments_list(
    ctx: typer.Context,
    target_type: str | None = typer.Option(None, "--target-type", help="e.g. video, audio, document."),
    target_id: str | None = typer.Option(None, "--target-id", help="Target resource id."),
) -> None:
    """List comments, optionally for one target."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client, not_found_ok=True):
        comments = client.comments.list_comments(
            workspace_id,
            target_type=target_type,
            target_id=target_id,
        )
        rows = [
            (
                str(comment.id),
                f"{comment.target_type}:{comment.target_id}",
                cell(comment.username or comment.author),
                truncate(comment.body, limit=80),
            )
            for comment in comments
        ]
        typer.echo(render_table(("id", "target", "author", "body"), rows, empty="no comments found"))


@comments_app.command("post")
def comments_post(
    ctx: typer.Context,
    body: str = typer.Argument(..., help="Comment text."),
    target_type: str = typer.Option(..., "--target-type", help="e.g. video, audio, document."),
    target_id: str = typer.Option(..., "--target-id", help="Target resource id."),
) -> None:
    """Post a comment on a media item or document."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        comment = client.comments.post_comment(
            workspace_id,
            target_type=target_type,
            target_id=target_id,
            body=body,
        )
    typer.echo(f"posted comment id={comment.id}")


@comments_app.command("delete")
def comments_delete(
    ctx: typer.Context,
    comment_id: str = typer.Argument(..., help="Comment id."),
) -> None:
    """Delete a comment."""
    client = _client(ctx)
    workspace_id = _require_workspace(client)
    with _api_errors(client):
        comment = client.comments.find_comment(workspace_id, comment_id)
        if comment is None:
            typer.echo(f"comment not found: {comment_id}", err=True)
            raise typer.Exit(code=1)
        client.comments.delete_comment(
            workspace_id,
            comment,
            role=_current_role(client),
            user_id=client.auth.user_id,
        )
    typer.echo(f"deleted comment id={comment_id}")


@profile_app.command("show")
def profile_show(ctx: typer.Context) -> None:
    """Show the current user's profile and workspace roles."""
    client = _client(ctx)
    state = _require_login(client)
    with _api_errors(client):
        profile = client.profile.get_my_profile()
        roles = client.profile.resolve_workspace_roles(state.user_id, profile.recent_workspaces)

    typer.echo(f"[{initials(profile)}] {full_name(profile) or '-'}")
    typer.echo(f"username={cell(profile.username)} email={cell(profile.email)}")
    typer.echo(f"date_of_birth={as_date_value(profile.date_of_birth) or '-'}")
    if profile.bio:
        typer.echo(profile.bio)
    names = {str(workspace.id): workspace.name for workspace in profile.recent_workspaces}
    rows = [(info.workspace_id, cell(names.get(info.workspace_id)), cell(info.role)) for info in roles]
    typer.echo(render_table(("workspace_id", "name", "role"), rows, empty="no recent workspaces"))


@profile_app.command("update")
def profile_update(
    ctx: typer.Context,
    first_name: str | None = typer.Option(None, "--first-name"),
    last_name: str | None = typer.Option(None, "--last-name"),
    username: str | None = typer.Option(None, "--username"),
    bio: str | None = typer.Option(None, "--bio"),
    date_of_birth: str | None = typer.Option(None, "--date-of-birth", help="YYYY-MM-DD."),
) -> None:
    """Update profile fields; blank values are ignored."""
    client = _client(ctx)
    _require_login(client)
    with _api_errors(client):
        updated = client.profile.update_my_profile(
            {
                "first_name": first_name,
                "last_name": last_name,
                "username": username,
                "bio": bio,
                "date_of_birth": date_of_birth,
            }
        )
    if updated is None:
        typer.echo("nothing to update")
        return
    typer.echo(f"profile updated username={cell(updated.username)}")


@profile_app.command("avatar")
def profile_avatar(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image file."),
) -> None:
    """Upload a profile photo and link it to the profile."""
    client = _client(ctx)
    _require_login(client)
    with _api_errors(client):
        profile = None
        workspace_id = client.workspace.workspace_id
        if workspace_id is None:
            profile = client.profile.get_my_profile()
        updated = client.profile.upload_avatar(path, workspace_id=workspace_id, profile=profile)
    typer.echo(f"avatar updated avatar_url={cell(updated.avatar_url)}")


def _client(ctx: typer.Context) -> ClientContext:
    client = ctx.obj
    if not isinstance(client, ClientContext):
        raise RuntimeError("client context is not initialized")
    return client


def _require_login(client: ClientContext) -> AuthState:
    state = client.auth.check_auth()
    if state.is_authenticated:
        return state
    if client.store.pop_session_expired():
        typer.echo("session expired; please login again", err=True)
    else:
        typer.echo("not logged in; run `avidcore login` first", err=True)
    raise typer.Exit(code=1)


def _require_workspace(client: ClientContext) -> int:
    _require_login(client)
    workspace_id = client.workspace.workspace_id
    if workspace_id is None:
        typer.echo("no workspace selected; run `avidcore workspaces select <id>`", err=True)
        raise typer.Exit(code=1)
    return workspace_id


def _current_role(client: ClientContext) -> str | None:
    role = client.workspace.refresh_role()
    if client.workspace.role_error:
        logging.warning("%s; continuing with least privilege", client.workspace.role_error)
    return role


@contextmanager
def _api_errors(client: ClientContext, *, not_found_ok: bool = False) -> Iterator[None]:
    try:
        yield
    except AccessDenied as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    except ApiError as exc:
        handled = handle_api_error(exc, client.store)
        if handled.kind == ErrorKind.NOT_FOUND and not_found_ok:
            typer.echo("nothing found")
            return
        typer.echo(handled.message, err=True)
        raise typer.Exit(code=1) from exc
    except requests.RequestException as exc:
        logging.error("request failed: %s", exc)
        typer.echo(f"request failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
