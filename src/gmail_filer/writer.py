"""Writing filed messages and client folders to disk."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from email.message import EmailMessage
from email.utils import format_datetime, formataddr

from gmail_filer.models import (
    ClientFolderResult,
    EmailAddress,
    FileFormat,
    FolderStructureNode,
    GeneralSettings,
    Message,
    NodeType,
    WriteResult,
)
from gmail_filer.sanitizer import sanitize

logger = logging.getLogger(__name__)


def _format_address(address: EmailAddress) -> str:
    return formataddr((address.name, address.address)) if address.name else address.address


def _message_date(message: Message):
    return message.received_at or message.sent_at


def _to_email_message(message: Message) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = message.subject
    msg["From"] = _format_address(message.sender)
    if message.to_recipients:
        msg["To"] = ", ".join(_format_address(r) for r in message.to_recipients)
    date = _message_date(message)
    if date is not None:
        msg["Date"] = format_datetime(date)
    if message.importance.value != "normal":
        msg["Importance"] = message.importance.value
    msg["X-Gmail-Id"] = message.id
    msg.set_content(message.body_text or "")
    return msg


def _to_text(message: Message) -> str:
    date = _message_date(message)
    lines = [
        f"From: {_format_address(message.sender)}",
        f"To: {', '.join(_format_address(r) for r in message.to_recipients)}",
        f"Subject: {message.subject}",
        f"Date: {date.isoformat() if date else ''}",
        f"Importance: {message.importance.value}",
        f"Attachments: {'yes' if message.has_attachments else 'no'}",
        "",
        message.body_text or "",
    ]
    return "\n".join(lines)


def render_message(message: Message, file_format: FileFormat, raw: bytes | None = None) -> bytes:
    """Serialize *message* in *file_format*.

    ``eml`` uses the provider's raw RFC 822 bytes when given. ``msg`` has
    limited support and is written as RFC 822 content.
    """
    if file_format == FileFormat.JSON:
        return json.dumps(message.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
    if file_format == FileFormat.TXT:
        return _to_text(message).encode("utf-8")
    if file_format == FileFormat.MSG:
        logger.warning("MSG output is limited: writing RFC 822 content for message %s", message.id)
    if raw is not None:
        return raw
    return bytes(_to_email_message(message))


def write_file(absolute_path: str, content: bytes) -> WriteResult:
    """Write *content* to *absolute_path*, creating parent directories.

    The data goes to a temporary file in the target directory first and is
    moved into place, so a crash never leaves a partial file.
    """
    directory = os.path.dirname(absolute_path)
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".filing-", suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, absolute_path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        logger.error("Could not write %s: %s", absolute_path, e)
        return WriteResult(success=False, path=absolute_path, error=str(e))

    logger.debug("Wrote %d bytes to %s", len(content), absolute_path)
    return WriteResult(success=True, path=absolute_path)


def deploy_structure(base_path: str, nodes: tuple[FolderStructureNode, ...] | list[FolderStructureNode]) -> int:
    """Create the template folders and files under *base_path*.

    Existing folders and files are left untouched. Returns the number of
    items created.
    """
    created = 0
    for node in nodes:
        item_path = os.path.join(base_path, node.name)
        if node.type == NodeType.FOLDER:
            if not os.path.isdir(item_path):
                os.makedirs(item_path, exist_ok=True)
                created += 1
            created += deploy_structure(item_path, node.children)
        elif not os.path.exists(item_path):
            os.makedirs(base_path, exist_ok=True)
            with open(item_path, "w", encoding="utf-8") as f:
                f.write(node.content or "")
            created += 1
    return created


def create_client_folder(name: str, settings: GeneralSettings) -> ClientFolderResult:
    """Create ``root_folder/name`` and deploy the folder-structure template into it."""
    if not settings.root_folder:
        return ClientFolderResult(success=False, error="No root folder configured")

    folder_name = sanitize(name.strip(), settings.character_cleaning)
    if not folder_name.strip():
        return ClientFolderResult(success=False, error="Client name is empty")

    client_path = os.path.join(settings.root_folder, folder_name)
    try:
        os.makedirs(client_path, exist_ok=True)
        items = deploy_structure(client_path, settings.folder_structure)
    except OSError as e:
        logger.error("Could not create client folder %s: %s", client_path, e)
        return ClientFolderResult(success=False, path=client_path, error=str(e))

    logger.info("Client folder ready at %s (%d template items created)", client_path, items)
    return ClientFolderResult(success=True, path=client_path, structure_items=items)
