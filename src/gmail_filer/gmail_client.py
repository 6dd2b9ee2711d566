"""Gmail API client functions for fetching and updating messages."""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from email.utils import getaddresses, parseaddr
from typing import Callable

from googleapiclient.errors import HttpError
from googleapiclient.http import BatchHttpRequest
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from gmail_filer.constants import BATCH_SIZE, MODIFY_BATCH_SIZE, PAGE_SIZE
from gmail_filer.models import Direction, EmailAddress, Importance, Message

logger = logging.getLogger(__name__)

_IMPORTANCE_VALUES = {"high": Importance.HIGH, "low": Importance.LOW, "normal": Importance.NORMAL}
_PRIORITY_VALUES = {"1": Importance.HIGH, "2": Importance.HIGH, "4": Importance.LOW, "5": Importance.LOW}


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


_retry_gmail = retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)


def parse_address(value: str) -> EmailAddress:
    """Parse a single address header value.

    "John Doe <john@example.com>" -> EmailAddress("John Doe", "john@example.com")
    """
    name, address = parseaddr(value or "")
    return EmailAddress(name=name.strip().strip('"').strip("'"), address=address.strip())


def parse_address_list(value: str) -> list[EmailAddress]:
    return [
        EmailAddress(name=name.strip(), address=address.strip())
        for name, address in getaddresses([value or ""])
        if address
    ]


def _parse_importance(headers: dict[str, str]) -> Importance:
    importance = headers.get("importance", "").strip().lower()
    if importance in _IMPORTANCE_VALUES:
        return _IMPORTANCE_VALUES[importance]
    priority = headers.get("x-priority", "").strip()[:1]
    return _PRIORITY_VALUES.get(priority, Importance.NORMAL)


def _walk_parts(payload: dict):
    yield payload
    for part in payload.get("parts", []) or []:
        yield from _walk_parts(part)


def _decode_body(data: str) -> str:
    return base64.urlsafe_b64decode(data.encode("ascii") + b"==").decode("utf-8", errors="replace")


def message_from_response(response: dict) -> Message:
    """Convert a ``users.messages.get`` response (format=full) into a Message."""
    payload = response.get("payload", {}) or {}
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    labels = response.get("labelIds", []) or []

    internal_ms = response.get("internalDate")
    timestamp = (
        datetime.fromtimestamp(int(internal_ms) / 1000, tz=timezone.utc) if internal_ms else None
    )
    direction = Direction.SENT if "SENT" in labels else Direction.RECEIVED

    has_attachments = False
    body_text = ""
    for part in _walk_parts(payload):
        if part.get("filename"):
            has_attachments = True
        elif not body_text and part.get("mimeType") == "text/plain":
            data = (part.get("body") or {}).get("data")
            if data:
                body_text = _decode_body(data)

    return Message(
        id=response["id"],
        subject=headers.get("subject", ""),
        sender=parse_address(headers.get("from", "")),
        to_recipients=parse_address_list(headers.get("to", "")),
        sent_at=timestamp if direction == Direction.SENT else None,
        received_at=timestamp if direction == Direction.RECEIVED else None,
        importance=_parse_importance(headers),
        has_attachments=has_attachments,
        direction=direction,
        body_text=body_text or response.get("snippet", ""),
        labels=labels,
        is_read="UNREAD" not in labels,
    )


@_retry_gmail
def _list_page(service, kwargs: dict) -> dict:
    return service.users().messages().list(**kwargs).execute()


def list_message_ids(
    service,
    query: str | None = None,
    max_results: int | None = None,
) -> list[str]:
    """List message IDs matching the query, handling pagination."""
    ids: list[str] = []
    page_token: str | None = None

    while True:
        kwargs: dict = {"userId": "me", "maxResults": PAGE_SIZE, "fields": "messages/id,nextPageToken"}
        if query:
            kwargs["q"] = query
        if page_token:
            kwargs["pageToken"] = page_token

        resp = _list_page(service, kwargs)
        for msg in resp.get("messages", []):
            ids.append(msg["id"])
            if max_results and len(ids) >= max_results:
                return ids[:max_results]

        page_token = resp.get("nextPageToken")
        if not page_token:
            break

    return ids


@_retry_gmail
def _execute_batch(batch: BatchHttpRequest) -> None:
    batch.execute()


def fetch_messages(
    service,
    message_ids: list[str],
    callback: Callable[[int, int], None] | None = None,
) -> list[Message]:
    """Fetch full messages in batches and convert them to snapshots.

    Messages that fail individually are logged and skipped. The result keeps
    the order of *message_ids*.
    """
    by_id: dict[str, Message] = {}
    total_batches = (len(message_ids) + BATCH_SIZE - 1) // BATCH_SIZE

    for batch_num in range(total_batches):
        start = batch_num * BATCH_SIZE
        chunk = message_ids[start:start + BATCH_SIZE]

        batch = service.new_batch_http_request()

        def _make_callback(msg_id: str):
            def _cb(request_id, response, exception):
                if exception is not None:
                    logger.warning("Could not fetch message %s: %s", msg_id, exception)
                    return
                by_id[msg_id] = message_from_response(response)

            return _cb

        for msg_id in chunk:
            batch.add(
                service.users().messages().get(userId="me", id=msg_id, format="full"),
                callback=_make_callback(msg_id),
            )

        _execute_batch(batch)

        if callback:
            callback(batch_num + 1, total_batches)

    return [by_id[i] for i in message_ids if i in by_id]


@_retry_gmail
def get_message(service, message_id: str) -> Message:
    response = service.users().messages().get(userId="me", id=message_id, format="full").execute()
    return message_from_response(response)


@_retry_gmail
def fetch_raw(service, message_id: str) -> bytes:
    """Return the RFC 822 source of a message."""
    response = service.users().messages().get(userId="me", id=message_id, format="raw").execute()
    return base64.urlsafe_b64decode(response["raw"].encode("ascii") + b"==")


@_retry_gmail
def _execute_batch_modify(service, msg_ids: list[str]) -> None:
    service.users().messages().batchModify(
        userId="me",
        body={"ids": msg_ids, "removeLabelIds": ["UNREAD"]},
    ).execute()


def mark_as_read(service, message_ids: list[str]) -> int:
    """Remove the UNREAD label from messages in batches. Returns the count updated."""
    updated = 0
    for start in range(0, len(message_ids), MODIFY_BATCH_SIZE):
        chunk = message_ids[start:start + MODIFY_BATCH_SIZE]
        _execute_batch_modify(service, chunk)
        updated += len(chunk)
    return updated
