"""Tests for the CLI module."""

import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

import gmail_filer.cli as cli_module
import gmail_filer.constants as constants
from gmail_filer.cli import cli
from gmail_filer.folder_tree import FolderTree
from gmail_filer.models import FileFormat
from gmail_filer.settings import SettingsStore
from gmail_filer.store import FilingHistory, SenderDirectory


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    config = tmp_path / "config"
    monkeypatch.setattr(constants, "SETTINGS_PATH", config / "general_settings.json")
    monkeypatch.setattr(constants, "DAEMON_CONFIG_PATH", config / "daemon_config.json")
    monkeypatch.setattr(constants, "DB_PATH", config / "filer.db")
    monkeypatch.setattr(constants, "LOG_PATH", config / "filer.log")
    return config


def _settings(config_dir):
    return SettingsStore(config_dir / "general_settings.json", config_dir / "daemon_config.json").load()


def test_cli_help():
    """CLI --help should work and show commands."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("auth", "messages", "suggest", "save", "senders", "settings", "structure", "sync", "daemon"):
        assert command in result.output


def test_cli_version():
    """CLI --version should show version."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_suggest_no_credentials(tmp_path, monkeypatch):
    """Commands that need Gmail should explain missing credentials."""
    import gmail_filer.auth as auth_module

    monkeypatch.setattr(auth_module, "CREDENTIALS_PATH", tmp_path / "nonexistent.json")
    monkeypatch.setattr(auth_module, "TOKEN_PATH", tmp_path / "token.json")
    monkeypatch.setattr(auth_module, "CONFIG_DIR", tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli, ["suggest", "abc"])
    assert result.exit_code != 0
    assert "Credentials file not found" in result.output or "Error" in result.output


def test_settings_show_defaults(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["settings", "show"])
    assert result.exit_code == 0
    assert "file_format" in result.output


def test_settings_set(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["settings", "set", "file_format", "eml"])
    assert result.exit_code == 0
    assert _settings(config_dir).file_format == FileFormat.EML


def test_settings_set_unknown_key(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["settings", "set", "colour", "blue"])
    assert result.exit_code != 0
    assert "Unknown setting" in result.output


def test_settings_corrupt_file(config_dir):
    config_dir.mkdir(parents=True)
    (config_dir / "general_settings.json").write_text("{oops")
    runner = CliRunner()
    result = runner.invoke(cli, ["settings", "show"])
    assert result.exit_code != 0
    assert "Cannot parse" in result.output


def test_settings_clean(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["settings", "clean", "@", "--on"])
    assert result.exit_code == 0
    assert _settings(config_dir).character_cleaning.characters_to_clean["@"] is True


def test_senders_set_list_remove(config_dir, tmp_path):
    runner = CliRunner()
    folder = str(tmp_path / "clients" / "Jane")

    result = runner.invoke(cli, ["senders", "set", "Jane@X.com", folder, "--name", "Jane"])
    assert result.exit_code == 0
    with SenderDirectory(db_path=constants.DB_PATH) as directory:
        assert directory.get("jane@x.com").folder_path == folder

    result = runner.invoke(cli, ["senders", "list"])
    assert result.exit_code == 0

    result = runner.invoke(cli, ["senders", "remove", "jane@x.com"])
    assert result.exit_code == 0
    result = runner.invoke(cli, ["senders", "remove", "jane@x.com"])
    assert result.exit_code != 0


def test_senders_import(config_dir, tmp_path):
    legacy = tmp_path / "sender_paths.json"
    legacy.write_text(json.dumps({"a@b.c": {"senderEmail": "a@b.c", "folderPath": "/clients/A"}}))
    runner = CliRunner()
    result = runner.invoke(cli, ["senders", "import", str(legacy)])
    assert result.exit_code == 0
    assert "Imported 1" in result.output


def test_structure_edit_and_deposit(config_dir):
    runner = CliRunner()
    assert runner.invoke(cli, ["structure", "add-folder", "Mails"]).exit_code == 0
    mails_id = FolderTree.from_nodes(_settings(config_dir).folder_structure).find_by_path("Mails")

    result = runner.invoke(cli, ["structure", "add-folder", "Recus", "--parent", mails_id[:8]])
    assert result.exit_code == 0
    result = runner.invoke(cli, ["structure", "add-file", "README.txt", "--content", "hello"])
    assert result.exit_code == 0

    result = runner.invoke(cli, ["structure", "deposit", "--received", "Mails/Recus"])
    assert result.exit_code == 0
    settings = _settings(config_dir)
    assert settings.received_email_deposit_folder == "Mails/Recus"
    assert FolderTree.from_nodes(settings.folder_structure).count() == 3

    result = runner.invoke(cli, ["structure", "show"])
    assert result.exit_code == 0
    assert "Recus" in result.output

    result = runner.invoke(cli, ["structure", "remove", mails_id])
    assert result.exit_code == 0
    settings = _settings(config_dir)
    assert settings.received_email_deposit_folder == ""
    assert FolderTree.from_nodes(settings.folder_structure).folder_paths() == []


def test_structure_deposit_must_exist(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["structure", "deposit", "--received", "Nope"])
    assert result.exit_code != 0


def test_structure_rename_follows_deposit(config_dir):
    runner = CliRunner()
    runner.invoke(cli, ["structure", "add-folder", "Mails"])
    runner.invoke(cli, ["structure", "deposit", "--received", "Mails"])
    mails_id = FolderTree.from_nodes(_settings(config_dir).folder_structure).find_by_path("Mails")

    result = runner.invoke(cli, ["structure", "rename", mails_id, "Courrier"])
    assert result.exit_code == 0
    assert _settings(config_dir).received_email_deposit_folder == "Courrier"


def test_structure_rename_ancestor_moves_nested_deposit(config_dir):
    runner = CliRunner()
    runner.invoke(cli, ["structure", "add-folder", "Mails"])
    mails_id = FolderTree.from_nodes(_settings(config_dir).folder_structure).find_by_path("Mails")
    runner.invoke(cli, ["structure", "add-folder", "Recus", "--parent", mails_id])
    runner.invoke(cli, ["structure", "deposit", "--received", "Mails/Recus"])

    result = runner.invoke(cli, ["structure", "rename", mails_id, "Courrier"])

    assert result.exit_code == 0, result.output
    assert _settings(config_dir).received_email_deposit_folder == "Courrier/Recus"


def test_structure_rejects_invalid_names(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["structure", "add-folder", ".."])
    assert result.exit_code != 0
    assert "Invalid template node name" in result.output

    runner.invoke(cli, ["structure", "add-folder", "Mails"])
    mails_id = FolderTree.from_nodes(_settings(config_dir).folder_structure).find_by_path("Mails")
    result = runner.invoke(cli, ["structure", "rename", mails_id, "a/b"])
    assert result.exit_code != 0
    assert FolderTree.from_nodes(_settings(config_dir).folder_structure).folder_paths() == ["Mails"]


def test_client_create(config_dir, tmp_path):
    runner = CliRunner()
    root = tmp_path / "clients"
    runner.invoke(cli, ["settings", "set", "root_folder", str(root)])
    runner.invoke(cli, ["structure", "add-folder", "Factures"])

    result = runner.invoke(cli, ["client", "create", "Acme"])
    assert result.exit_code == 0
    assert (root / "Acme" / "Factures").is_dir()


def test_client_create_without_root(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["client", "create", "Acme"])
    assert result.exit_code != 0


def test_daemon_config(config_dir):
    runner = CliRunner()
    result = runner.invoke(cli, ["daemon", "config", "--interval", "10", "--mark-read"])
    assert result.exit_code == 0
    config = SettingsStore(daemon_path=constants.DAEMON_CONFIG_PATH).load_daemon_config()
    assert config.sync_interval_minutes == 10
    assert config.mark_as_read is True

    result = runner.invoke(cli, ["daemon", "config", "--interval", "0"])
    assert result.exit_code != 0


def test_save_remembers_new_contact(config_dir, tmp_path, monkeypatch, received_message):
    monkeypatch.setattr(cli_module, "get_gmail_service", lambda: MagicMock())
    monkeypatch.setattr(cli_module, "get_message", lambda service, msg_id: received_message)
    runner = CliRunner()
    runner.invoke(cli, ["structure", "add-folder", "Factures"])
    runner.invoke(cli, ["structure", "deposit", "--received", "Factures"])
    target = tmp_path / "clients" / "Jane"
    target.mkdir(parents=True)

    result = runner.invoke(cli, ["save", received_message.id, "--path", str(target)])

    assert result.exit_code == 0, result.output
    with SenderDirectory(db_path=constants.DB_PATH) as directory:
        assert directory.get("jane@example.com").folder_path == str(target)
    with FilingHistory(db_path=constants.DB_PATH) as history:
        assert history.was_filed(received_message.id)
    # the template is deployed for a new contact once the file is written
    assert (target / "Factures").is_dir()
    files = list(target.glob("*.json"))
    assert len(files) == 1


def test_save_without_known_folder(config_dir, monkeypatch, received_message):
    monkeypatch.setattr(cli_module, "get_gmail_service", lambda: MagicMock())
    monkeypatch.setattr(cli_module, "get_message", lambda service, msg_id: received_message)
    runner = CliRunner()
    result = runner.invoke(cli, ["save", received_message.id])
    assert result.exit_code != 0
    assert "--path" in result.output
