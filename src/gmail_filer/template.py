"""Expansion of filename patterns such as ``{date}_{time}_{subject}``.

Date and time placeholders describe the moment the file is saved, not the
message's own timestamps. The result is sanitized once, after every
placeholder has been substituted.
"""

from __future__ import annotations

import re
from datetime import datetime

from gmail_filer.constants import (
    EMPTY_SUBJECT,
    MESSAGE_ID_LENGTH,
    MONTH_NAMES,
    SUBJECT_MAX_LENGTH,
    SUBJECT_SHORT_MAX_LENGTH,
    UNKNOWN_VALUE,
    WEEK_DAYS,
)
from gmail_filer.errors import TemplateError
from gmail_filer.models import CharacterCleaningPolicy, Direction, EmailAddress, Message
from gmail_filer.sanitizer import sanitize

_PLACEHOLDER_RE = re.compile(r"\{([a-z0-9_]+)\}")

PLACEHOLDERS = (
    "date",
    "date_fr",
    "date_us",
    "year",
    "month",
    "day",
    "time",
    "time_12",
    "hour",
    "minute",
    "second",
    "subject",
    "subject_short",
    "sender_email",
    "sender_name",
    "recipient_email",
    "recipient_name",
    "message_id",
    "importance",
    "has_attachments",
    "timestamp",
    "timestamp_ms",
    "week_day",
    "month_name",
    "quarter",
    "type_prefix",
    "direction",
)


def _or_unknown(value: str | None) -> str:
    return value if value else UNKNOWN_VALUE


def _party_values(party: EmailAddress | None) -> tuple[str, str]:
    if party is None:
        return UNKNOWN_VALUE, UNKNOWN_VALUE
    return _or_unknown(party.address.strip()), _or_unknown(party.name.strip())


def placeholder_values(message: Message, role: Direction, now: datetime) -> dict[str, str]:
    """Compute the value of every known placeholder for *message* at *now*."""
    subject = message.subject or EMPTY_SUBJECT
    sender_email, sender_name = _party_values(message.sender)
    recipient_email, recipient_name = _party_values(message.first_recipient)
    is_sent = role == Direction.SENT

    return {
        "date": now.strftime("%Y-%m-%d"),
        "date_fr": now.strftime("%d-%m-%Y"),
        "date_us": now.strftime("%m-%d-%Y"),
        "year": now.strftime("%Y"),
        "month": now.strftime("%m"),
        "day": now.strftime("%d"),
        "time": now.strftime("%H-%M-%S"),
        "time_12": now.strftime("%I-%M-%S") + ("PM" if now.hour >= 12 else "AM"),
        "hour": now.strftime("%H"),
        "minute": now.strftime("%M"),
        "second": now.strftime("%S"),
        "subject": subject[:SUBJECT_MAX_LENGTH],
        "subject_short": subject[:SUBJECT_SHORT_MAX_LENGTH],
        "sender_email": sender_email,
        "sender_name": sender_name,
        "recipient_email": recipient_email,
        "recipient_name": recipient_name,
        "message_id": (message.id or "")[:MESSAGE_ID_LENGTH],
        "importance": message.importance.value,
        "has_attachments": "with-attachments" if message.has_attachments else "no-attachments",
        "timestamp": str(int(now.timestamp())),
        "timestamp_ms": str(int(now.timestamp() * 1000)),
        "week_day": WEEK_DAYS[now.weekday()],
        "month_name": MONTH_NAMES[now.month - 1],
        "quarter": f"Q{(now.month - 1) // 3 + 1}",
        "type_prefix": "SENT" if is_sent else "RECEIVED",
        "direction": "OUT" if is_sent else "IN",
    }


def expand(
    pattern: str,
    message: Message,
    role: Direction,
    policy: CharacterCleaningPolicy | None = None,
    now: datetime | None = None,
) -> str:
    """Expand *pattern* for *message* and return a sanitized filename stem.

    Unknown placeholders are kept as literal text. Substituted values are
    never expanded again.

    Raises:
        TemplateError: the sanitized result is empty or only whitespace.
    """
    values = placeholder_values(message, role, now or datetime.now())

    def _substitute(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    expanded = _PLACEHOLDER_RE.sub(_substitute, pattern or "")
    result = sanitize(expanded, policy)
    if not result.strip():
        raise TemplateError(f"Pattern {pattern!r} produced an empty filename")
    return result
