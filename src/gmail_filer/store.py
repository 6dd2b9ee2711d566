"""SQLite persistence for sender folders and filing history."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path

from gmail_filer.constants import DB_PATH
from gmail_filer.deposit import split_logical_path
from gmail_filer.models import SenderPathEntry, normalize_email

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS sender_paths (
    sender_email TEXT PRIMARY KEY,
    sender_name TEXT,
    folder_path TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS filed_messages (
    message_id TEXT PRIMARY KEY,
    contact_email TEXT,
    file_path TEXT,
    filed_at TEXT
);
"""


class _SQLiteStore:
    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_CREATE_TABLES_SQL)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()


def _row_to_entry(row: sqlite3.Row) -> SenderPathEntry:
    return SenderPathEntry(
        sender_email=row["sender_email"],
        sender_name=row["sender_name"],
        folder_path=row["folder_path"],
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


class SenderDirectory(_SQLiteStore):
    """Persistent mapping from correspondent email to the folder chosen for it.

    Keys are normalized (trimmed, lower-cased) so ``Jane@X.com`` and
    ``jane@x.com`` share one entry. Upserts are last-write-wins.
    """

    def get(self, email: str) -> SenderPathEntry | None:
        key = normalize_email(email)
        if not key:
            return None
        row = self._conn.execute(
            "SELECT * FROM sender_paths WHERE sender_email = ?", (key,)
        ).fetchone()
        return _row_to_entry(row) if row else None

    def upsert(self, entry: SenderPathEntry) -> SenderPathEntry:
        """Insert or overwrite the entry for ``entry.sender_email``.

        ``updated_at`` is always refreshed; ``created_at`` of an existing
        entry is preserved.
        """
        key = normalize_email(entry.sender_email)
        if not key:
            raise ValueError("sender_email must not be empty")

        now = datetime.now().isoformat()
        with self._conn:
            self._conn.execute(
                "INSERT INTO sender_paths (sender_email, sender_name, folder_path, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(sender_email) DO UPDATE SET "
                "sender_name = excluded.sender_name, "
                "folder_path = excluded.folder_path, "
                "updated_at = excluded.updated_at",
                (key, entry.sender_name, entry.folder_path, entry.created_at or now, now),
            )
        logger.debug("Sender path for %s set to %s", key, entry.folder_path)
        return self.get(key)

    def delete(self, email: str) -> bool:
        """Remove the entry for *email*. Returns True if one existed."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM sender_paths WHERE sender_email = ?", (normalize_email(email),)
            )
        return cursor.rowcount > 0

    def list_all(self) -> list[SenderPathEntry]:
        """Return every entry, most recently updated first."""
        rows = self._conn.execute(
            "SELECT * FROM sender_paths ORDER BY updated_at DESC, sender_email ASC"
        ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def prune_deposit_folder(self, logical_path: str) -> list[str]:
        """Delete entries pointing into a deposit folder that no longer exists in the template.

        An entry matches when the trailing components of its folder path equal
        the components of *logical_path*. Returns the removed emails.
        """
        parts = [os.path.normcase(p) for p in split_logical_path(logical_path)]
        if not parts:
            return []

        removed: list[str] = []
        for entry in self.list_all():
            tail = [os.path.normcase(p) for p in Path(entry.folder_path).parts[-len(parts):]]
            if tail == parts:
                self.delete(entry.sender_email)
                removed.append(entry.sender_email)
        if removed:
            logger.info("Removed %d sender path(s) under deposit folder %s", len(removed), logical_path)
        return removed

    def import_legacy(self, path: Path) -> int:
        """Import a JSON file of ``{email: {sender_email, sender_name, folder_path}}`` records.

        Returns the number of imported entries.
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        records = data.values() if isinstance(data, dict) else data
        count = 0
        for record in records:
            email = record.get("sender_email") or record.get("senderEmail")
            folder = record.get("folder_path") or record.get("folderPath")
            if not email or not folder:
                logger.warning("Skipping incomplete legacy record: %r", record)
                continue
            self.upsert(
                SenderPathEntry(
                    sender_email=email,
                    sender_name=record.get("sender_name") or record.get("senderName"),
                    folder_path=folder,
                    created_at=record.get("created_at", ""),
                )
            )
            count += 1
        return count

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) AS c FROM sender_paths").fetchone()["c"]


class FilingHistory(_SQLiteStore):
    """Record of messages already written to disk, used by the poller."""

    def record(self, message_id: str, contact_email: str, file_path: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO filed_messages (message_id, contact_email, file_path, filed_at) "
                "VALUES (?, ?, ?, ?)",
                (message_id, normalize_email(contact_email), file_path, datetime.now().isoformat()),
            )

    def was_filed(self, message_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM filed_messages WHERE message_id = ?", (message_id,)
        ).fetchone()
        return row is not None

    def recent(self, limit: int = 20) -> list[dict]:
        rows = self._conn.execute(
            "SELECT * FROM filed_messages ORDER BY filed_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(r) for r in rows]
