"""CLI entry point for Gmail Filer."""

from __future__ import annotations

import os
import threading
from dataclasses import replace

import click

from gmail_filer import constants
from gmail_filer.auth import check_auth, get_gmail_service, logout
from gmail_filer.display import (
    configure_logging,
    console,
    display_filing_result,
    display_messages,
    display_sender_paths,
    display_settings,
    display_structure,
    display_suggestion,
    display_sync_stats,
)
from gmail_filer.errors import FilerError
from gmail_filer.filing import FilingOrchestrator
from gmail_filer.folder_tree import FolderTree
from gmail_filer.gmail_client import fetch_messages, fetch_raw, get_message, list_message_ids
from gmail_filer.models import Confidence, FileFormat, SenderPathEntry
from gmail_filer.settings import (
    SettingsStore,
    remove_structure_node,
    rename_structure_node,
    set_character_cleaning,
    update_setting,
)
from gmail_filer.store import FilingHistory, SenderDirectory
from gmail_filer.suggest import suggest
from gmail_filer.sync import MailSync
from gmail_filer.writer import create_client_folder, deploy_structure, render_message, write_file

__version__ = "0.1.0"


def _service():
    try:
        return get_gmail_service()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e


def _store() -> SettingsStore:
    return SettingsStore(constants.SETTINGS_PATH, constants.DAEMON_CONFIG_PATH)


def _load_settings(store: SettingsStore | None = None):
    try:
        return (store or _store()).load()
    except FilerError as e:
        raise click.ClickException(e.message) from e


def _directory() -> SenderDirectory:
    return SenderDirectory(db_path=constants.DB_PATH)


def _resolve_node_id(tree: FolderTree, prefix: str) -> str:
    matches = [node_id for _, node_id in tree.walk() if node_id.startswith(prefix)]
    if not matches:
        raise click.ClickException(f"No template node with id {prefix!r}")
    if len(matches) > 1:
        raise click.ClickException(f"Id prefix {prefix!r} is ambiguous")
    return matches[0]


@click.group()
@click.version_option(version=__version__, prog_name="gmail-filer")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Gmail Filer - file your Gmail messages into per-correspondent folders."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(verbose)


@cli.command()
@click.option("--logout", "do_logout", is_flag=True, help="Forget the cached token.")
def auth(do_logout: bool) -> None:
    """Test or reset Gmail authentication."""
    if do_logout:
        if logout():
            console.print("[green]Logged out.[/green]")
        else:
            console.print("[dim]No cached token.[/dim]")
        return

    address = check_auth()
    if address is None:
        raise click.ClickException("Authentication failed.")
    console.print(f"Authenticated as [bold]{address}[/bold]")


@cli.command()
@click.option("--sent", is_flag=True, help="List sent messages instead of received ones.")
@click.option("-n", "--limit", default=20, type=int, help="Number of messages to show.")
@click.option("-q", "--query", default=None, help="Extra Gmail search query.")
def messages(sent: bool, limit: int, query: str | None) -> None:
    """List messages with the folder suggested for each."""
    service = _service()
    full_query = " ".join(q for q in ("in:sent" if sent else "in:inbox", query) if q)
    ids = list_message_ids(service, query=full_query, max_results=limit)
    fetched = fetch_messages(service, ids)

    settings = _load_settings()
    tree = FolderTree.from_nodes(settings.folder_structure)
    with _directory() as directory:
        suggestions = {m.id: suggest(m, directory, tree) for m in fetched}

    display_messages(fetched, suggestions)


@cli.command(name="suggest")
@click.argument("message_id")
def suggest_cmd(message_id: str) -> None:
    """Show where a message would be filed."""
    service = _service()
    message = get_message(service, message_id)
    settings = _load_settings()
    with _directory() as directory:
        suggestion = suggest(message, directory, FolderTree.from_nodes(settings.folder_structure))
    display_suggestion(message, suggestion)


@cli.command()
@click.argument("message_id")
@click.option("-p", "--path", "folder", default=None, help="Folder to file into.")
@click.option("--create", "client_name", default=None, help="Create a new client folder under the root folder.")
@click.option(
    "--remember/--no-remember",
    default=None,
    help="Store the folder for this contact (default: when it differs from the known one).",
)
def save(message_id: str, folder: str | None, client_name: str | None, remember: bool | None) -> None:
    """File one message to disk."""
    if folder and client_name:
        raise click.UsageError("Use either --path or --create, not both.")

    service = _service()
    message = get_message(service, message_id)
    settings = _load_settings()

    with _directory() as directory:
        suggestion = suggest(message, directory, FolderTree.from_nodes(settings.folder_structure))

        structure_deployed = False
        if client_name:
            created = create_client_folder(client_name, settings)
            if not created.success:
                raise click.ClickException(f"Could not create client folder: {created.error}")
            chosen = created.path
            structure_deployed = True
        elif folder:
            chosen = os.path.abspath(os.path.expanduser(folder))
        elif suggestion.folder_path:
            chosen = suggestion.folder_path
        else:
            contact = message.contact
            who = contact.address if contact else message_id
            raise click.ClickException(f"No folder known for {who}. Use --path or --create.")

        if remember is None:
            remember = not (suggestion.confidence == Confidence.HIGH and suggestion.folder_path == chosen)

        try:
            result = FilingOrchestrator(directory).file(message, chosen, settings, persist_choice=remember)
        except FilerError as e:
            raise click.ClickException(e.message) from e

    raw = fetch_raw(service, message.id) if settings.file_format in (FileFormat.EML, FileFormat.MSG) else None
    written = write_file(result.absolute_path, render_message(message, settings.file_format, raw=raw))
    if not written.success:
        raise click.ClickException(f"Could not write {written.path}: {written.error}")

    with FilingHistory(db_path=constants.DB_PATH) as history:
        history.record(message.id, message.contact.address, written.path)

    if result.persisted and result.new_contact and not structure_deployed and settings.folder_structure:
        items = deploy_structure(result.base_path, settings.folder_structure)
        console.print(f"[dim]Folder structure deployed for new contact ({items} item(s) created).[/dim]")

    display_filing_result(result)


# --- senders ---


@cli.group(name="senders")
def senders_group() -> None:
    """Manage the folder remembered for each correspondent."""


@senders_group.command(name="list")
def senders_list() -> None:
    """Show every configured sender folder."""
    with _directory() as directory:
        display_sender_paths(directory.list_all())


@senders_group.command(name="set")
@click.argument("email")
@click.argument("folder", type=click.Path(file_okay=False))
@click.option("--name", default=None, help="Display name for the correspondent.")
def senders_set(email: str, folder: str, name: str | None) -> None:
    """Set the folder for EMAIL."""
    folder_path = os.path.abspath(os.path.expanduser(folder))
    with _directory() as directory:
        try:
            entry = directory.upsert(SenderPathEntry(sender_email=email, sender_name=name, folder_path=folder_path))
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    console.print(f"[green]{entry.sender_email}[/green] -> {entry.folder_path}")


@senders_group.command(name="remove")
@click.argument("email")
def senders_remove(email: str) -> None:
    """Forget the folder for EMAIL."""
    with _directory() as directory:
        removed = directory.delete(email)
    if not removed:
        raise click.ClickException(f"No folder configured for {email}")
    console.print(f"[green]Removed {email}.[/green]")


@senders_group.command(name="import")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False))
def senders_import(json_file: str) -> None:
    """Import sender folders from a sender_paths.json file."""
    with _directory() as directory:
        count = directory.import_legacy(json_file)
    console.print(f"[green]Imported {count} sender folder(s).[/green]")


# --- settings ---


@cli.group(name="settings")
def settings_group() -> None:
    """Show or change filing settings."""


@settings_group.command(name="show")
def settings_show() -> None:
    """Show the current settings."""
    display_settings(_load_settings())


@settings_group.command(name="set")
@click.argument("key")
@click.argument("value")
def settings_set(key: str, value: str) -> None:
    """Set KEY to VALUE (e.g. 'file_format eml')."""
    store = _store()
    try:
        settings = update_setting(_load_settings(store), key, value)
    except FilerError as e:
        raise click.ClickException(e.message) from e
    store.save(settings)
    console.print(f"[green]{key} updated.[/green]")


@settings_group.command(name="clean")
@click.argument("char")
@click.option("--on/--off", "enabled", default=True, help="Replace or keep CHAR in filenames.")
def settings_clean(char: str, enabled: bool) -> None:
    """Choose whether CHAR is replaced in generated filenames."""
    store = _store()
    try:
        settings = set_character_cleaning(_load_settings(store), char, enabled)
    except FilerError as e:
        raise click.ClickException(e.message) from e
    store.save(settings)
    console.print(f"[green]{char!r} will {'be replaced' if enabled else 'be kept'}.[/green]")


# --- folder structure ---


@cli.group(name="structure")
def structure_group() -> None:
    """Edit the folder structure created for each new client."""


@structure_group.command(name="show")
def structure_show() -> None:
    """Show the folder-structure template."""
    settings = _load_settings()
    display_structure(FolderTree.from_nodes(settings.folder_structure), settings)


def _add_node(name: str, parent: str | None, content: str | None) -> None:
    store = _store()
    settings = _load_settings(store)
    tree = FolderTree.from_nodes(settings.folder_structure)
    parent_id = _resolve_node_id(tree, parent) if parent else None
    try:
        if content is None:
            node_id = tree.add_folder(name, parent_id=parent_id)
        else:
            node_id = tree.add_file(name, content=content, parent_id=parent_id)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    store.save(replace(settings, folder_structure=tree.to_nodes()))
    console.print(f"[green]Added {tree.logical_path(node_id)}[/green] [dim]{node_id[:8]}[/dim]")


@structure_group.command(name="add-folder")
@click.argument("name")
@click.option("--parent", default=None, help="Id (or id prefix) of the parent folder.")
def structure_add_folder(name: str, parent: str | None) -> None:
    """Add a folder to the template."""
    _add_node(name, parent, None)


@structure_group.command(name="add-file")
@click.argument("name")
@click.option("--content", default="", help="Initial file content.")
@click.option("--parent", default=None, help="Id (or id prefix) of the parent folder.")
def structure_add_file(name: str, content: str, parent: str | None) -> None:
    """Add a file to the template."""
    _add_node(name, parent, content)


@structure_group.command(name="rename")
@click.argument("node_id")
@click.argument("name")
def structure_rename(node_id: str, name: str) -> None:
    """Rename a template node."""
    store = _store()
    settings = _load_settings(store)
    resolved = _resolve_node_id(FolderTree.from_nodes(settings.folder_structure), node_id)
    try:
        settings, old_path, new_path = rename_structure_node(settings, resolved, name)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    store.save(settings)
    console.print(f"[green]Renamed {old_path} to {new_path}.[/green]")


@structure_group.command(name="remove")
@click.argument("node_id")
def structure_remove(node_id: str) -> None:
    """Remove a template node and everything under it."""
    store = _store()
    settings = _load_settings(store)
    resolved = _resolve_node_id(FolderTree.from_nodes(settings.folder_structure), node_id)
    with _directory() as directory:
        updated, removed = remove_structure_node(settings, resolved, directory=directory)
    store.save(updated)
    console.print(f"[green]Removed {len(removed)} folder(s).[/green]")


@structure_group.command(name="deposit")
@click.option("--received", default=None, help="Template folder used for received mail ('' to clear).")
@click.option("--sent", default=None, help="Template folder used for sent mail ('' to clear).")
def structure_deposit(received: str | None, sent: str | None) -> None:
    """Select the template folders that receive filed mail."""
    store = _store()
    settings = _load_settings(store)
    folders = FolderTree.from_nodes(settings.folder_structure).folder_paths()
    for value in (received, sent):
        if value and value not in folders:
            raise click.ClickException(f"{value!r} is not a folder of the template: {', '.join(folders) or 'none'}")
    if received is not None:
        settings = replace(settings, received_email_deposit_folder=received)
    if sent is not None:
        settings = replace(settings, sent_email_deposit_folder=sent)
    store.save(settings)
    console.print(
        f"Received: [bold]{settings.received_email_deposit_folder or '-'}[/bold]  "
        f"Sent: [bold]{settings.sent_email_deposit_folder or '-'}[/bold]"
    )


@structure_group.command(name="deploy")
@click.argument("folder", type=click.Path(file_okay=False))
def structure_deploy(folder: str) -> None:
    """Create the template inside an existing client FOLDER."""
    settings = _load_settings()
    items = deploy_structure(os.path.abspath(folder), settings.folder_structure)
    console.print(f"[green]{items} item(s) created.[/green]")


# --- clients ---


@cli.group(name="client")
def client_group() -> None:
    """Manage client folders under the root folder."""


@client_group.command(name="create")
@click.argument("name")
def client_create(name: str) -> None:
    """Create a client folder with the template structure."""
    result = create_client_folder(name, _load_settings())
    if not result.success:
        raise click.ClickException(result.error or "Could not create client folder")
    console.print(f"[green]Created {result.path}[/green] ({result.structure_items} template item(s))")


# --- sync ---


@cli.command()
@click.option("--mark-read", is_flag=True, help="Mark filed inbox messages as read.")
@click.option("-m", "--max-messages", default=None, type=int, help="Maximum messages per folder.")
def sync(mark_read: bool, max_messages: int | None) -> None:
    """Run one synchronization: file new mail from known correspondents."""
    service = _service()
    with _directory() as directory, FilingHistory(db_path=constants.DB_PATH) as history:
        try:
            stats = MailSync(service, _store(), directory, history).run_once(
                mark_read=mark_read, max_messages=max_messages
            )
        except FilerError as e:
            raise click.ClickException(e.message) from e
    display_sync_stats(stats)


@cli.command()
@click.option("-n", "--limit", default=20, type=int, help="Number of entries to show.")
def history(limit: int) -> None:
    """Show recently filed messages."""
    with FilingHistory(db_path=constants.DB_PATH) as filing_history:
        rows = filing_history.recent(limit)
    if not rows:
        console.print("[dim]Nothing filed yet.[/dim]")
        return
    for row in rows:
        console.print(f"[dim]{row['filed_at'][:19]}[/dim] {row['contact_email']} -> {row['file_path']}")


@cli.group(name="daemon")
def daemon_group() -> None:
    """Poll the mailbox periodically."""


@daemon_group.command(name="run")
@click.option("--interval", default=None, type=int, help="Minutes between polls (overrides the config).")
@click.pass_context
def daemon_run(ctx: click.Context, interval: int | None) -> None:
    """Run the poller in the foreground until interrupted."""
    store = _store()
    config = store.load_daemon_config()
    if not config.enabled:
        raise click.ClickException("The daemon is disabled. Enable it with 'daemon config --enable'.")
    if interval is not None:
        config = replace(config, sync_interval_minutes=interval)

    configure_logging(ctx.obj.get("verbose", False), log_file=constants.LOG_PATH)
    service = _service()
    stop_event = threading.Event()
    with _directory() as directory, FilingHistory(db_path=constants.DB_PATH) as history:
        try:
            MailSync(service, store, directory, history).run_forever(config, stop_event)
        except KeyboardInterrupt:
            stop_event.set()
            console.print("[dim]Stopped.[/dim]")


@daemon_group.command(name="config")
@click.option("--interval", default=None, type=int, help="Minutes between polls.")
@click.option("--mark-read/--no-mark-read", default=None, help="Mark filed inbox messages as read.")
@click.option("--max-messages", default=None, type=int, help="Maximum messages per folder and cycle.")
@click.option("--enable/--disable", default=None, help="Allow or forbid 'daemon run'.")
def daemon_config(
    interval: int | None, mark_read: bool | None, max_messages: int | None, enable: bool | None
) -> None:
    """Show or update the poller configuration."""
    store = _store()
    config = store.load_daemon_config()
    changes = {
        "sync_interval_minutes": interval,
        "mark_as_read": mark_read,
        "max_messages": max_messages,
        "enabled": enable,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if changes:
        config = replace(config, **changes)
        try:
            store.save_daemon_config(config)
        except FilerError as e:
            raise click.ClickException(e.message) from e

    console.print(f"[bold]Enabled:[/bold] {config.enabled}")
    console.print(f"[bold]Interval:[/bold] {config.sync_interval_minutes} min")
    console.print(f"[bold]Mark as read:[/bold] {config.mark_as_read}")
    console.print(f"[bold]Max messages:[/bold] {config.max_messages}")
