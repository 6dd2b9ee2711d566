"""Background polling: file new mail from known correspondents."""

from __future__ import annotations

import logging
import threading

from gmail_filer.constants import INBOX_QUERY, SENT_QUERY
from gmail_filer.errors import FilerError, SyncInProgressError
from gmail_filer.filing import FilingOrchestrator
from gmail_filer.folder_tree import FolderTree
from gmail_filer.gmail_client import fetch_messages, fetch_raw, list_message_ids, mark_as_read
from gmail_filer.models import (
    Confidence,
    DaemonConfig,
    FileFormat,
    GeneralSettings,
    Message,
    SuggestionType,
    SyncStats,
)
from gmail_filer.settings import SettingsStore
from gmail_filer.store import FilingHistory, SenderDirectory
from gmail_filer.suggest import suggest
from gmail_filer.writer import render_message, write_file

logger = logging.getLogger(__name__)

# One poll cycle at a time per process, whichever caller starts it.
_IN_FLIGHT = threading.Lock()


class MailSync:
    """Runs poll cycles against one mailbox.

    Only messages whose suggestion is a known correspondent with high
    confidence are filed automatically; nothing is guessed. A second cycle
    requested while one is in flight, from any instance in this process, is
    rejected.
    """

    def __init__(
        self,
        service,
        settings_store: SettingsStore,
        directory: SenderDirectory,
        history: FilingHistory,
    ) -> None:
        self._service = service
        self._settings_store = settings_store
        self._directory = directory
        self._history = history
        self._orchestrator = FilingOrchestrator(directory)
        self._in_flight = _IN_FLIGHT

    @property
    def running(self) -> bool:
        return self._in_flight.locked()

    def run_once(self, mark_read: bool = False, max_messages: int | None = None) -> SyncStats:
        """Run one poll cycle.

        Raises:
            SyncInProgressError: another cycle is still running.
        """
        if not self._in_flight.acquire(blocking=False):
            raise SyncInProgressError("A synchronization is already running")
        try:
            return self._sync(mark_read, max_messages)
        finally:
            self._in_flight.release()

    def _sync(self, mark_read: bool, max_messages: int | None) -> SyncStats:
        settings = self._settings_store.load()
        tree = FolderTree.from_nodes(settings.folder_structure)
        stats = SyncStats()

        ids: list[str] = []
        for query in (INBOX_QUERY, SENT_QUERY):
            ids.extend(list_message_ids(self._service, query=query, max_results=max_messages))
        ids = list(dict.fromkeys(ids))

        pending = []
        for msg_id in ids:
            if self._history.was_filed(msg_id):
                stats.already_filed += 1
            else:
                pending.append(msg_id)

        messages = fetch_messages(self._service, pending)
        stats.fetched = len(messages)
        logger.info("Sync: %d new message(s), %d already filed", len(messages), stats.already_filed)

        filed_inbox_ids: list[str] = []
        for message in messages:
            suggestion = suggest(message, self._directory, tree)
            if suggestion.type != SuggestionType.EXISTING or suggestion.confidence != Confidence.HIGH:
                stats.unmatched += 1
                continue
            try:
                path = self._file_message(message, suggestion.folder_path, settings)
            except (FilerError, OSError) as e:
                logger.error("Could not file message %s: %s", message.id, e)
                stats.errors += 1
                continue
            if path is None:
                stats.errors += 1
                continue
            stats.filed += 1
            stats.filed_paths.append(path)
            if not message.is_read:
                filed_inbox_ids.append(message.id)

        if mark_read and filed_inbox_ids:
            mark_as_read(self._service, filed_inbox_ids)

        logger.info(
            "Sync finished: %d filed, %d unmatched, %d error(s)", stats.filed, stats.unmatched, stats.errors
        )
        return stats

    def _file_message(self, message: Message, folder_path: str, settings: GeneralSettings) -> str | None:
        result = self._orchestrator.file(message, folder_path, settings, persist_choice=False)
        raw = None
        if settings.file_format in (FileFormat.EML, FileFormat.MSG):
            raw = fetch_raw(self._service, message.id)
        written = write_file(result.absolute_path, render_message(message, settings.file_format, raw=raw))
        if not written.success:
            return None
        self._history.record(message.id, message.contact.address, written.path)
        return written.path

    def run_forever(self, config: DaemonConfig, stop_event: threading.Event) -> None:
        """Poll every ``config.sync_interval_minutes`` until *stop_event* is set.

        A failed cycle is logged and the loop continues.
        """
        interval = max(1, config.sync_interval_minutes) * 60
        logger.info("Daemon started (every %d minute(s))", config.sync_interval_minutes)
        while not stop_event.is_set():
            try:
                self.run_once(mark_read=config.mark_as_read, max_messages=config.max_messages)
            except SyncInProgressError as e:
                logger.warning("%s; skipping this cycle", e.message)
            except Exception:  # noqa: BLE001
                logger.exception("Sync cycle failed")
            stop_event.wait(interval)
        logger.info("Daemon stopped")
