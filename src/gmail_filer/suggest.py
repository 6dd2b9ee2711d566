"""Destination suggestions for incoming and outgoing mail."""

from __future__ import annotations

import logging
from pathlib import PurePath

from gmail_filer.constants import REASON_KNOWN, REASON_NO_CONTACT, REASON_NO_MATCH, REASON_SIMILAR
from gmail_filer.errors import SuggestionError
from gmail_filer.folder_tree import FolderTree
from gmail_filer.models import (
    Confidence,
    EmailAddress,
    Message,
    SenderPathEntry,
    Suggestion,
    SuggestionType,
    normalize_email,
)
from gmail_filer.store import SenderDirectory

logger = logging.getLogger(__name__)


def _match_keys(contact: EmailAddress) -> list[str]:
    """Strings identifying the contact: display name, local part, first domain label."""
    address = normalize_email(contact.address)
    local, _, domain = address.partition("@")
    keys = [contact.name.strip().lower(), local, domain.split(".")[0] if domain else ""]
    return [k for k in dict.fromkeys(keys) if k]


def _entry_labels(entry: SenderPathEntry) -> list[str]:
    labels = [(entry.sender_name or "").strip().lower(), PurePath(entry.folder_path).name.lower()]
    return [label for label in labels if label]


def _overlaps(a: str, b: str) -> bool:
    return a in b or b in a


def find_similar(contact: EmailAddress, entries: list[SenderPathEntry]) -> list[SenderPathEntry]:
    """Entries whose name or folder leaf overlaps one of the contact's keys, case-insensitively."""
    keys = _match_keys(contact)
    return [
        entry
        for entry in entries
        if any(_overlaps(key, label) for key in keys for label in _entry_labels(entry))
    ]


def _suggest(
    message: Message,
    directory: SenderDirectory,
    folder_tree: FolderTree | None,
) -> Suggestion:
    if message is None or not isinstance(message, Message):
        raise SuggestionError("Not a message snapshot")

    contact = message.contact
    if contact is None:
        return Suggestion(
            type=SuggestionType.NO_SUGGESTION,
            confidence=Confidence.NONE,
            reason=REASON_NO_CONTACT,
        )

    email = normalize_email(contact.address)
    entry = directory.get(email)
    if entry is not None:
        return Suggestion(
            type=SuggestionType.EXISTING,
            confidence=Confidence.HIGH,
            folder_path=entry.folder_path,
            client_name=entry.sender_name or email,
            reason=REASON_KNOWN,
        )

    candidates = find_similar(contact, directory.list_all())
    if len(candidates) == 1:
        match = candidates[0]
        return Suggestion(
            type=SuggestionType.EXISTING,
            confidence=Confidence.MEDIUM,
            folder_path=match.folder_path,
            client_name=match.sender_name or match.sender_email,
            reason=REASON_SIMILAR,
        )
    if candidates:
        logger.debug("Ambiguous match for %s: %d candidates", email, len(candidates))

    return Suggestion(
        type=SuggestionType.NEW,
        confidence=Confidence.LOW,
        client_name=contact.name.strip() or email,
        reason=REASON_NO_MATCH,
        structure_items=folder_tree.count() if folder_tree is not None else 0,
    )


def suggest(
    message: Message,
    directory: SenderDirectory,
    folder_tree: FolderTree | None = None,
) -> Suggestion:
    """Propose where *message* should be filed.

    First match wins: a known correspondent (high confidence), a single
    similar client (medium), otherwise a new client (low). Messages with no
    contact email get ``no_suggestion``. Never raises: failures come back as a
    ``type=error`` suggestion.
    """
    try:
        return _suggest(message, directory, folder_tree)
    except Exception as e:  # noqa: BLE001
        logger.warning("Suggestion failed for message %s: %s", getattr(message, "id", "?"), e)
        return Suggestion(
            type=SuggestionType.ERROR,
            confidence=Confidence.NONE,
            reason=f"suggestion failed: {e}",
        )
