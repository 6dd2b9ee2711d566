"""Data models for Gmail Filer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from gmail_filer.constants import (
    DEFAULT_CHARACTERS_TO_CLEAN,
    DEFAULT_FILENAME_PATTERN,
    DEFAULT_FILENAME_PATTERN_SENT,
    DEFAULT_REPLACEMENT,
    DEFAULT_SYNC_INTERVAL_MINUTES,
    DEFAULT_SYNC_MAX_MESSAGES,
)


class Direction(str, Enum):
    RECEIVED = "received"
    SENT = "sent"


class Importance(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class FileFormat(str, Enum):
    JSON = "json"
    TXT = "txt"
    EML = "eml"
    MSG = "msg"


class NodeType(str, Enum):
    FOLDER = "folder"
    FILE = "file"


class SuggestionType(str, Enum):
    EXISTING = "existing"
    NEW = "new"
    NO_SUGGESTION = "no_suggestion"
    ERROR = "error"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


def normalize_email(email: str | None) -> str:
    """Return the directory key for an address: trimmed and lower-cased."""
    return (email or "").strip().lower()


@dataclass
class EmailAddress:
    """A display name / address pair as found in From and To headers."""

    name: str = ""
    address: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "address": self.address}


@dataclass
class Message:
    """Read-only snapshot of a mailbox message."""

    id: str
    subject: str = ""
    sender: EmailAddress = field(default_factory=EmailAddress)
    to_recipients: list[EmailAddress] = field(default_factory=list)
    sent_at: datetime | None = None
    received_at: datetime | None = None
    importance: Importance = Importance.NORMAL
    has_attachments: bool = False
    direction: Direction = Direction.RECEIVED
    body_text: str = ""
    labels: list[str] = field(default_factory=list)
    is_read: bool = True

    @property
    def first_recipient(self) -> EmailAddress | None:
        return self.to_recipients[0] if self.to_recipients else None

    @property
    def contact(self) -> EmailAddress | None:
        """The correspondent: the sender of received mail, the first recipient of sent mail.

        Returns None when that party has no usable address.
        """
        if self.direction == Direction.SENT:
            party = self.first_recipient
        else:
            party = self.sender
        if party is None or not normalize_email(party.address):
            return None
        return party

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject": self.subject,
            "from": self.sender.to_dict(),
            "toRecipients": [r.to_dict() for r in self.to_recipients],
            "sentDateTime": self.sent_at.isoformat() if self.sent_at else None,
            "receivedDateTime": self.received_at.isoformat() if self.received_at else None,
            "importance": self.importance.value,
            "hasAttachments": self.has_attachments,
            "direction": self.direction.value,
            "isRead": self.is_read,
            "labels": list(self.labels),
            "body": self.body_text,
        }


@dataclass
class SenderPathEntry:
    """Folder chosen for one correspondent."""

    sender_email: str
    folder_path: str
    sender_name: str | None = None
    updated_at: str = ""
    created_at: str = ""


@dataclass(frozen=True)
class FolderStructureNode:
    """One node of the folder-structure template deployed into client folders."""

    id: str
    name: str
    type: NodeType = NodeType.FOLDER
    children: tuple[FolderStructureNode, ...] = ()
    content: str = ""


@dataclass(frozen=True)
class CharacterCleaningPolicy:
    """Which characters are replaced in generated filenames, and by what."""

    enabled: bool = True
    characters_to_clean: dict[str, bool] = field(
        default_factory=lambda: dict(DEFAULT_CHARACTERS_TO_CLEAN)
    )
    replace_with: str = DEFAULT_REPLACEMENT


@dataclass(frozen=True)
class GeneralSettings:
    """Immutable snapshot of the user's filing configuration.

    Use ``dataclasses.replace`` to derive an edited copy.
    """

    root_folder: str = ""
    folder_structure: tuple[FolderStructureNode, ...] = ()
    received_email_deposit_folder: str = ""
    sent_email_deposit_folder: str = ""
    email_deposit_folder: str = ""  # legacy single setting
    file_format: FileFormat = FileFormat.JSON
    filename_pattern: str = DEFAULT_FILENAME_PATTERN
    filename_pattern_sent: str = DEFAULT_FILENAME_PATTERN_SENT
    character_cleaning: CharacterCleaningPolicy = field(default_factory=CharacterCleaningPolicy)


@dataclass
class Suggestion:
    """Proposed destination for a message. Never persisted."""

    type: SuggestionType
    confidence: Confidence
    reason: str
    folder_path: str | None = None
    client_name: str | None = None
    structure_items: int = 0


@dataclass
class DepositResolution:
    final_path: str
    used: bool


@dataclass
class FilingResult:
    """Where a message is written, as decided by the orchestrator."""

    absolute_path: str
    file_name: str
    deposit_folder: str
    deposit_folder_used: bool
    base_path: str
    persisted: bool = False
    new_contact: bool = False


@dataclass
class WriteResult:
    success: bool
    path: str
    error: str | None = None


@dataclass
class ClientFolderResult:
    success: bool
    path: str | None = None
    error: str | None = None
    structure_items: int = 0


@dataclass
class SyncStats:
    """Outcome of one poll cycle."""

    fetched: int = 0
    filed: int = 0
    already_filed: int = 0
    unmatched: int = 0
    errors: int = 0
    filed_paths: list[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class DaemonConfig:
    enabled: bool = True
    sync_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    mark_as_read: bool = False
    max_messages: int = DEFAULT_SYNC_MAX_MESSAGES
