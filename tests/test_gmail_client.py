"""Tests for Gmail API response parsing and calls."""

import base64
from datetime import datetime, timezone
from unittest.mock import MagicMock

from gmail_filer.gmail_client import (
    list_message_ids,
    mark_as_read,
    message_from_response,
    parse_address,
    parse_address_list,
)
from gmail_filer.models import Direction, Importance


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _response(**overrides) -> dict:
    response = {
        "id": "18d2f0a1b2c3d4e5",
        "labelIds": ["INBOX", "UNREAD"],
        "internalDate": "1709649000000",
        "snippet": "Bonjour...",
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "From", "value": '"Jane Martin" <jane@example.com>'},
                {"name": "To", "value": "Me <me@mycompany.fr>, bob@acme.com"},
                {"name": "Subject", "value": "Facture mars"},
                {"name": "X-Priority", "value": "1 (Highest)"},
            ],
            "parts": [
                {"mimeType": "text/plain", "filename": "", "body": {"data": _b64("Bonjour, voici la facture.")}},
                {"mimeType": "application/pdf", "filename": "facture.pdf", "body": {"attachmentId": "a1"}},
            ],
        },
    }
    response.update(overrides)
    return response


def test_parse_address():
    address = parse_address('"Doe, John" <john@example.com>')
    assert address.name == "Doe, John"
    assert address.address == "john@example.com"

    bare = parse_address("john@example.com")
    assert bare.name == ""
    assert bare.address == "john@example.com"


def test_parse_address_list():
    addresses = parse_address_list("A <a@x.com>, b@y.com")
    assert [a.address for a in addresses] == ["a@x.com", "b@y.com"]
    assert parse_address_list("") == []


def test_message_from_response():
    message = message_from_response(_response())

    assert message.id == "18d2f0a1b2c3d4e5"
    assert message.subject == "Facture mars"
    assert message.sender.name == "Jane Martin"
    assert message.sender.address == "jane@example.com"
    assert [r.address for r in message.to_recipients] == ["me@mycompany.fr", "bob@acme.com"]
    assert message.direction == Direction.RECEIVED
    assert message.received_at == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
    assert message.sent_at is None
    assert message.importance == Importance.HIGH
    assert message.has_attachments is True
    assert message.body_text == "Bonjour, voici la facture."
    assert message.is_read is False
    assert message.contact.address == "jane@example.com"


def test_sent_message_from_response():
    message = message_from_response(_response(labelIds=["SENT"]))
    assert message.direction == Direction.SENT
    assert message.sent_at is not None
    assert message.received_at is None
    assert message.is_read is True
    assert message.contact.address == "me@mycompany.fr"


def test_snippet_used_without_text_part():
    response = _response()
    response["payload"]["parts"] = []
    message = message_from_response(response)
    assert message.body_text == "Bonjour..."
    assert message.has_attachments is False


def test_importance_header():
    response = _response()
    response["payload"]["headers"] = [{"name": "Importance", "value": "Low"}]
    assert message_from_response(response).importance == Importance.LOW


def test_list_message_ids_paginates():
    service = MagicMock()
    list_call = service.users.return_value.messages.return_value.list
    list_call.return_value.execute.side_effect = [
        {"messages": [{"id": "1"}, {"id": "2"}], "nextPageToken": "t"},
        {"messages": [{"id": "3"}]},
    ]

    ids = list_message_ids(service, query="in:inbox")

    assert ids == ["1", "2", "3"]
    assert list_call.call_args_list[0].kwargs["q"] == "in:inbox"
    assert list_call.call_args_list[1].kwargs["pageToken"] == "t"


def test_list_message_ids_respects_max():
    service = MagicMock()
    list_call = service.users.return_value.messages.return_value.list
    list_call.return_value.execute.return_value = {"messages": [{"id": str(i)} for i in range(10)]}

    assert list_message_ids(service, max_results=3) == ["0", "1", "2"]


def test_mark_as_read():
    service = MagicMock()
    modify = service.users.return_value.messages.return_value.batchModify

    assert mark_as_read(service, ["1", "2"]) == 2
    assert modify.call_args.kwargs["body"] == {"ids": ["1", "2"], "removeLabelIds": ["UNREAD"]}
