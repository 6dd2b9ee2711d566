"""Filing decisions: final path and filename for a message."""

from __future__ import annotations

import logging
import os
from datetime import datetime

from gmail_filer import deposit, template
from gmail_filer.constants import FALLBACK_STEM, MESSAGE_ID_LENGTH
from gmail_filer.errors import InvalidMessageError, InvalidPathError, TemplateError
from gmail_filer.models import (
    Direction,
    FilingResult,
    GeneralSettings,
    Message,
    SenderPathEntry,
    normalize_email,
)
from gmail_filer.sanitizer import sanitize
from gmail_filer.store import SenderDirectory

logger = logging.getLogger(__name__)


def _check_chosen_path(chosen_path: str | None) -> str:
    if not chosen_path or not chosen_path.strip():
        raise InvalidPathError("No destination folder was chosen")
    if "\x00" in chosen_path:
        raise InvalidPathError(f"Destination folder contains a NUL byte: {chosen_path!r}")
    if not os.path.isabs(chosen_path):
        raise InvalidPathError(f"Destination folder must be an absolute path: {chosen_path!r}")
    return chosen_path


class FilingOrchestrator:
    """Combines template expansion, deposit-folder probing and the sender directory."""

    def __init__(self, directory: SenderDirectory) -> None:
        self._directory = directory

    def file_name_for(self, message: Message, settings: GeneralSettings, now: datetime | None = None) -> str:
        """Return ``<expanded pattern>.<format>`` for *message*.

        A pattern that expands to nothing falls back to the message id.
        """
        role = message.direction
        pattern = settings.filename_pattern_sent if role == Direction.SENT else settings.filename_pattern
        try:
            stem = template.expand(pattern, message, role, settings.character_cleaning, now=now)
        except TemplateError as e:
            logger.warning("%s; using the message id instead", e.message)
            stem = sanitize((message.id or "")[:MESSAGE_ID_LENGTH], settings.character_cleaning)
            if not stem.strip():
                stem = FALLBACK_STEM
        return f"{stem}.{settings.file_format.value}"

    def file(
        self,
        message: Message,
        chosen_path: str,
        settings: GeneralSettings,
        persist_choice: bool = False,
        now: datetime | None = None,
    ) -> FilingResult:
        """Decide where *message* is written.

        When *persist_choice* is set, the base *chosen_path* (not the deposit
        subfolder) is stored for the message's contact, after everything else
        has been computed.

        Raises:
            InvalidMessageError: no contact email can be determined.
            InvalidPathError: *chosen_path* is empty or not absolute.
        """
        contact = message.contact
        if contact is None:
            raise InvalidMessageError(f"Message {message.id!r} has no contact email")
        chosen_path = _check_chosen_path(chosen_path)

        role = message.direction
        file_name = self.file_name_for(message, settings, now=now)
        deposit_name = deposit.deposit_folder_for(settings, role)
        resolution = deposit.resolve(chosen_path, deposit_name)
        absolute_path = os.path.join(resolution.final_path, file_name)

        email = normalize_email(contact.address)
        new_contact = self._directory.get(email) is None
        if persist_choice:
            self._directory.upsert(
                SenderPathEntry(
                    sender_email=email,
                    sender_name=contact.name.strip() or None,
                    folder_path=chosen_path,
                )
            )
            logger.info("Remembered %s for %s", chosen_path, email)

        return FilingResult(
            absolute_path=absolute_path,
            file_name=file_name,
            deposit_folder=deposit_name,
            deposit_folder_used=resolution.used,
            base_path=chosen_path,
            persisted=persist_choice,
            new_contact=new_contact,
        )
