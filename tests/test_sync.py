"""Tests for the background poller."""

import threading
from unittest.mock import MagicMock

import pytest

import gmail_filer.sync as sync_module
from gmail_filer.errors import SyncInProgressError
from gmail_filer.models import DaemonConfig, EmailAddress, GeneralSettings, Message, SenderPathEntry
from gmail_filer.settings import SettingsStore
from gmail_filer.sync import MailSync


@pytest.fixture
def settings_store(tmp_path) -> SettingsStore:
    store = SettingsStore(tmp_path / "general_settings.json", tmp_path / "daemon_config.json")
    store.save(GeneralSettings())
    return store


@pytest.fixture
def fake_gmail(monkeypatch):
    """Patch the Gmail calls used by the poller; returns the mutable fake state."""
    state = {
        "inbox": [],
        "sent": [],
        "messages": {},
        "marked": [],
    }

    def _list(service, query=None, max_results=None):
        ids = state["sent"] if "in:sent" in query else state["inbox"]
        return ids[:max_results] if max_results else list(ids)

    def _fetch(service, ids, callback=None):
        return [state["messages"][i] for i in ids if i in state["messages"]]

    def _mark(service, ids):
        state["marked"].extend(ids)
        return len(ids)

    monkeypatch.setattr(sync_module, "list_message_ids", _list)
    monkeypatch.setattr(sync_module, "fetch_messages", _fetch)
    monkeypatch.setattr(sync_module, "mark_as_read", _mark)
    monkeypatch.setattr(sync_module, "fetch_raw", lambda service, msg_id: b"raw")
    return state


def _message(msg_id: str, address: str, is_read: bool = False) -> Message:
    return Message(id=msg_id, subject=f"Subject {msg_id}", sender=EmailAddress(address=address), is_read=is_read)


def test_files_known_correspondents_only(tmp_path, settings_store, directory, history, fake_gmail):
    client_dir = tmp_path / "clients" / "Jane"
    directory.upsert(SenderPathEntry(sender_email="jane@x.com", folder_path=str(client_dir)))
    fake_gmail["inbox"] = ["m1", "m2"]
    fake_gmail["messages"] = {"m1": _message("m1", "jane@x.com"), "m2": _message("m2", "stranger@y.com")}

    stats = MailSync(MagicMock(), settings_store, directory, history).run_once()

    assert stats.fetched == 2
    assert stats.filed == 1
    assert stats.unmatched == 1
    assert stats.errors == 0
    assert history.was_filed("m1")
    assert not history.was_filed("m2")
    assert len(list(client_dir.iterdir())) == 1
    assert fake_gmail["marked"] == []


def test_already_filed_messages_skipped(tmp_path, settings_store, directory, history, fake_gmail):
    directory.upsert(SenderPathEntry(sender_email="jane@x.com", folder_path=str(tmp_path / "Jane")))
    fake_gmail["inbox"] = ["m1"]
    fake_gmail["messages"] = {"m1": _message("m1", "jane@x.com")}
    poller = MailSync(MagicMock(), settings_store, directory, history)

    poller.run_once()
    stats = poller.run_once()

    assert stats.already_filed == 1
    assert stats.fetched == 0
    assert stats.filed == 0


def test_message_in_both_queries_filed_once(tmp_path, settings_store, directory, history, fake_gmail):
    directory.upsert(SenderPathEntry(sender_email="jane@x.com", folder_path=str(tmp_path / "Jane")))
    fake_gmail["inbox"] = ["m1"]
    fake_gmail["sent"] = ["m1"]
    fake_gmail["messages"] = {"m1": _message("m1", "jane@x.com")}

    stats = MailSync(MagicMock(), settings_store, directory, history).run_once()

    assert stats.filed == 1


def test_mark_read(tmp_path, settings_store, directory, history, fake_gmail):
    directory.upsert(SenderPathEntry(sender_email="jane@x.com", folder_path=str(tmp_path / "Jane")))
    fake_gmail["inbox"] = ["m1", "m2"]
    fake_gmail["messages"] = {
        "m1": _message("m1", "jane@x.com"),
        "m2": _message("m2", "jane@x.com", is_read=True),
    }

    MailSync(MagicMock(), settings_store, directory, history).run_once(mark_read=True)

    assert fake_gmail["marked"] == ["m1"]


def test_write_failure_counted(tmp_path, settings_store, directory, history, fake_gmail):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a folder")
    directory.upsert(SenderPathEntry(sender_email="jane@x.com", folder_path=str(blocker)))
    fake_gmail["inbox"] = ["m1"]
    fake_gmail["messages"] = {"m1": _message("m1", "jane@x.com")}

    stats = MailSync(MagicMock(), settings_store, directory, history).run_once()

    assert stats.errors == 1
    assert stats.filed == 0
    assert not history.was_filed("m1")


def test_concurrent_run_rejected(settings_store, directory, history, fake_gmail):
    poller = MailSync(MagicMock(), settings_store, directory, history)
    poller._in_flight.acquire()
    try:
        assert poller.running is True
        with pytest.raises(SyncInProgressError):
            poller.run_once()
    finally:
        poller._in_flight.release()
    assert poller.running is False


def test_run_forever_stops(settings_store, directory, history, fake_gmail):
    poller = MailSync(MagicMock(), settings_store, directory, history)
    stop_event = threading.Event()
    calls = []

    def _run_once(**kwargs):
        calls.append(kwargs)
        stop_event.set()

    poller.run_once = _run_once
    poller.run_forever(DaemonConfig(sync_interval_minutes=1, mark_as_read=True, max_messages=10), stop_event)

    assert calls == [{"mark_read": True, "max_messages": 10}]


def test_run_forever_survives_failed_cycle(settings_store, directory, history, fake_gmail):
    poller = MailSync(MagicMock(), settings_store, directory, history)
    stop_event = threading.Event()

    def _run_once(**kwargs):
        stop_event.set()
        raise RuntimeError("network down")

    poller.run_once = _run_once
    poller.run_forever(DaemonConfig(), stop_event)

    assert stop_event.is_set()
