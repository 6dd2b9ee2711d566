"""Rich-based display functions for Gmail Filer."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from gmail_filer.deposit import split_logical_path
from gmail_filer.folder_tree import FolderTree
from gmail_filer.models import (
    Confidence,
    FilingResult,
    GeneralSettings,
    Message,
    NodeType,
    SenderPathEntry,
    Suggestion,
    SyncStats,
)
from gmail_filer.template import PLACEHOLDERS

console = Console()

_CONFIDENCE_COLORS = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "yellow",
    Confidence.LOW: "dark_orange",
    Confidence.NONE: "dim",
}


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Route log records to the shared console, and optionally to *log_file*."""
    handlers: list[logging.Handler] = [
        RichHandler(console=console, show_path=False, rich_tracebacks=True)
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    # googleapiclient is chatty at INFO
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def _confidence_label(confidence: Confidence) -> str:
    color = _CONFIDENCE_COLORS[confidence]
    return f"[{color}]{confidence.value}[/{color}]"


def display_messages(messages: list[Message], suggestions: dict[str, Suggestion]) -> None:
    """Show messages with the folder suggested for each."""
    table = Table(title="Messages")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Contact")
    table.add_column("Subject")
    table.add_column("Suggested folder")
    table.add_column("Confidence")

    for message in messages:
        contact = message.contact
        date = message.received_at or message.sent_at
        suggestion = suggestions.get(message.id)
        table.add_row(
            message.id,
            date.strftime("%Y-%m-%d %H:%M") if date else "",
            escape(contact.name or contact.address) if contact else "[dim]-[/dim]",
            ("[bold]" if not message.is_read else "") + escape(message.subject or "(no subject)"),
            (suggestion.folder_path or "") if suggestion else "",
            _confidence_label(suggestion.confidence) if suggestion else "",
        )

    console.print(table)


def display_suggestion(message: Message, suggestion: Suggestion) -> None:
    contact = message.contact
    lines = [
        f"[bold]Message:[/bold] {escape(message.subject or '(no subject)')}",
        f"[bold]Contact:[/bold] {contact.name + ' ' if contact and contact.name else ''}"
        f"{'<' + contact.address + '>' if contact else '-'}",
        f"[bold]Suggestion:[/bold] {suggestion.type.value}",
        f"[bold]Confidence:[/bold] {_confidence_label(suggestion.confidence)}",
        f"[bold]Reason:[/bold] {suggestion.reason}",
    ]
    if suggestion.client_name:
        lines.append(f"[bold]Client:[/bold] {suggestion.client_name}")
    if suggestion.folder_path:
        lines.append(f"[bold]Folder:[/bold] {suggestion.folder_path}")
    if suggestion.structure_items:
        lines.append(f"[dim]{suggestion.structure_items} template item(s) will be created for a new client[/dim]")
    console.print(Panel("\n".join(lines), title="Suggestion"))


def display_filing_result(result: FilingResult) -> None:
    lines = [f"[bold]Saved to:[/bold] {result.absolute_path}"]
    if result.deposit_folder:
        status = "used" if result.deposit_folder_used else "not found, saved in base folder"
        lines.append(f"[bold]Deposit folder:[/bold] {result.deposit_folder} ({status})")
    if result.persisted:
        lines.append(f"[dim]Folder remembered for this contact: {result.base_path}[/dim]")
    console.print(Panel("\n".join(lines), title="Saved", border_style="green"))


def display_sender_paths(entries: list[SenderPathEntry]) -> None:
    if not entries:
        console.print("[dim]No sender folders configured.[/dim]")
        return
    table = Table(title="Sender folders")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Email")
    table.add_column("Name")
    table.add_column("Folder")
    table.add_column("Updated", style="dim")
    for idx, entry in enumerate(entries, start=1):
        table.add_row(str(idx), entry.sender_email, entry.sender_name or "", entry.folder_path, entry.updated_at[:19])
    console.print(table)


def display_settings(settings: GeneralSettings) -> None:
    cleaning = settings.character_cleaning
    cleaned = "".join(c for c, flag in cleaning.characters_to_clean.items() if flag)
    lines = [
        f"[bold]root_folder:[/bold] {settings.root_folder or '[dim](not set)[/dim]'}",
        f"[bold]received_email_deposit_folder:[/bold] {settings.received_email_deposit_folder}",
        f"[bold]sent_email_deposit_folder:[/bold] {settings.sent_email_deposit_folder}",
        f"[bold]file_format:[/bold] {settings.file_format.value}",
        f"[bold]filename_pattern:[/bold] {settings.filename_pattern}",
        f"[bold]filename_pattern_sent:[/bold] {settings.filename_pattern_sent}",
        f"[bold]cleaning_enabled:[/bold] {cleaning.enabled}",
        f"[bold]replace_with:[/bold] {cleaning.replace_with!r}",
        f"[bold]characters cleaned:[/bold] {cleaned}",
        "",
        "[dim]Placeholders: " + " ".join("{" + p + "}" for p in PLACEHOLDERS) + "[/dim]",
    ]
    console.print(Panel("\n".join(lines), title="Settings"))


def display_structure(tree: FolderTree, settings: GeneralSettings) -> None:
    deposit_paths = {
        "/".join(split_logical_path(p))
        for p in (settings.received_email_deposit_folder, settings.sent_email_deposit_folder)
        if p
    }
    root = Tree(f"[bold]{settings.root_folder or '<root>'}[/bold]/<client>")
    branches = {None: root}
    for _, node_id in tree.walk():
        node = tree.get(node_id)
        parent = branches[tree.parent_of(node_id)]
        label = f"{node.name}/" if node.type == NodeType.FOLDER else node.name
        if tree.logical_path(node_id) in deposit_paths:
            label += " [green](deposit)[/green]"
        branches[node_id] = parent.add(f"{label} [dim]{node_id[:8]}[/dim]")
    console.print(root)


def display_sync_stats(stats: SyncStats) -> None:
    console.print(
        Panel(
            f"Fetched: {stats.fetched}  |  Filed: {stats.filed}  |  "
            f"Already filed: {stats.already_filed}  |  Unmatched: {stats.unmatched}  |  "
            f"Errors: {stats.errors}",
            title="Sync",
        )
    )
