"""Structured errors raised by the filing core and its adapters.

Every error carries an ``ErrorKind`` so callers can branch on a stable string
instead of the exception class, and a human-readable ``message``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable error identifiers. Values equal their names."""

    INVALID_MESSAGE = "INVALID_MESSAGE"
    INVALID_PATH = "INVALID_PATH"
    TEMPLATE_EMPTY = "TEMPLATE_EMPTY"
    SUGGESTION_FAILED = "SUGGESTION_FAILED"
    SETTINGS_INVALID = "SETTINGS_INVALID"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"


class FilerError(Exception):
    """Base class for all Gmail Filer errors."""

    kind: ErrorKind

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class InvalidMessageError(FilerError):
    """The message has no resolvable contact email."""

    kind = ErrorKind.INVALID_MESSAGE


class InvalidPathError(FilerError):
    """The chosen destination folder is empty or malformed."""

    kind = ErrorKind.INVALID_PATH


class TemplateError(FilerError):
    """A filename pattern expanded to nothing after sanitization."""

    kind = ErrorKind.TEMPLATE_EMPTY


class SuggestionError(FilerError):
    """Raised inside the suggestion engine; never escapes ``suggest``."""

    kind = ErrorKind.SUGGESTION_FAILED


class SettingsError(FilerError):
    """The settings file exists but cannot be read."""

    kind = ErrorKind.SETTINGS_INVALID


class SyncInProgressError(FilerError):
    """A poll cycle was requested while another one is still running."""

    kind = ErrorKind.SYNC_IN_PROGRESS
