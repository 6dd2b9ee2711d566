"""Shared fixtures for tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from gmail_filer.models import Direction, EmailAddress, Message
from gmail_filer.store import FilingHistory, SenderDirectory


@pytest.fixture
def fixed_now() -> datetime:
    # A Tuesday in March
    return datetime(2024, 3, 5, 14, 7, 9)


@pytest.fixture
def received_message() -> Message:
    return Message(
        id="18d2f0a1b2c3d4e5",
        subject="Facture mars",
        sender=EmailAddress(name="Jane Martin", address="Jane@Example.com"),
        to_recipients=[EmailAddress(name="Me", address="me@mycompany.fr")],
        received_at=datetime(2024, 3, 5, 9, 30),
        direction=Direction.RECEIVED,
        body_text="Bonjour, veuillez trouver la facture.",
        labels=["INBOX", "UNREAD"],
        is_read=False,
    )


@pytest.fixture
def sent_message() -> Message:
    return Message(
        id="18d2f0ffeeddccbb",
        subject="Devis",
        sender=EmailAddress(name="Me", address="me@mycompany.fr"),
        to_recipients=[
            EmailAddress(name="Acme Corp", address="contact@acme.com"),
            EmailAddress(name="Bob", address="bob@acme.com"),
        ],
        sent_at=datetime(2024, 3, 5, 11, 0),
        direction=Direction.SENT,
        labels=["SENT"],
    )


@pytest.fixture
def directory(tmp_path):
    with SenderDirectory(db_path=tmp_path / "filer.db") as d:
        yield d


@pytest.fixture
def history(tmp_path):
    with FilingHistory(db_path=tmp_path / "filer.db") as h:
        yield h
