"""JSON-backed settings store and settings edits."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, replace
from pathlib import Path

from gmail_filer.constants import DAEMON_CONFIG_PATH, SETTINGS_PATH
from gmail_filer.deposit import split_logical_path
from gmail_filer.errors import SettingsError
from gmail_filer.folder_tree import FolderTree, new_node_id
from gmail_filer.models import (
    CharacterCleaningPolicy,
    DaemonConfig,
    FileFormat,
    FolderStructureNode,
    GeneralSettings,
    NodeType,
)
from gmail_filer.store import SenderDirectory

logger = logging.getLogger(__name__)

# Keys written by the previous desktop application.
_LEGACY_KEYS = {
    "rootFolder": "root_folder",
    "folderStructure": "folder_structure",
    "emailDepositFolder": "email_deposit_folder",
    "receivedEmailDepositFolder": "received_email_deposit_folder",
    "sentEmailDepositFolder": "sent_email_deposit_folder",
    "fileFormat": "file_format",
    "filenamePattern": "filename_pattern",
    "filenamePatternSent": "filename_pattern_sent",
    "characterCleaning": "character_cleaning",
    "charactersToClean": "characters_to_clean",
    "replaceWith": "replace_with",
}

EDITABLE_KEYS = (
    "root_folder",
    "received_email_deposit_folder",
    "sent_email_deposit_folder",
    "file_format",
    "filename_pattern",
    "filename_pattern_sent",
    "cleaning_enabled",
    "replace_with",
)


def _rename_keys(data: dict) -> dict:
    return {_LEGACY_KEYS.get(k, k): v for k, v in data.items()}


def node_from_dict(data: dict) -> FolderStructureNode:
    node_type = NodeType(data.get("type", NodeType.FOLDER.value))
    raw_id = data.get("id")
    return FolderStructureNode(
        id=str(raw_id) if raw_id not in (None, "") else new_node_id(),
        name=str(data.get("name", "")),
        type=node_type,
        children=tuple(node_from_dict(c) for c in data.get("children") or [])
        if node_type == NodeType.FOLDER
        else (),
        content=data.get("content") or "",
    )


def node_to_dict(node: FolderStructureNode) -> dict:
    data: dict = {"id": node.id, "name": node.name, "type": node.type.value}
    if node.type == NodeType.FOLDER:
        data["children"] = [node_to_dict(c) for c in node.children]
    else:
        data["content"] = node.content
    return data


def settings_from_dict(data: dict) -> GeneralSettings:
    """Build a settings snapshot from stored JSON, filling defaults for missing keys.

    A legacy ``email_deposit_folder`` is copied into
    ``received_email_deposit_folder`` when the latter is unset.
    """
    data = _rename_keys(data)
    defaults = GeneralSettings()

    cleaning_data = _rename_keys(data.get("character_cleaning") or {})
    default_cleaning = CharacterCleaningPolicy()
    characters = dict(default_cleaning.characters_to_clean)
    characters.update({str(k): bool(v) for k, v in (cleaning_data.get("characters_to_clean") or {}).items()})
    cleaning = CharacterCleaningPolicy(
        enabled=bool(cleaning_data.get("enabled", default_cleaning.enabled)),
        characters_to_clean=characters,
        replace_with=str(cleaning_data.get("replace_with", default_cleaning.replace_with)),
    )

    try:
        file_format = FileFormat(data.get("file_format") or defaults.file_format.value)
    except ValueError as e:
        raise SettingsError(f"Unsupported file format: {data.get('file_format')!r}") from e

    legacy_deposit = data.get("email_deposit_folder") or ""
    received_deposit = data.get("received_email_deposit_folder") or legacy_deposit

    return GeneralSettings(
        root_folder=data.get("root_folder") or "",
        folder_structure=tuple(node_from_dict(n) for n in data.get("folder_structure") or []),
        received_email_deposit_folder=received_deposit,
        sent_email_deposit_folder=data.get("sent_email_deposit_folder") or "",
        email_deposit_folder=legacy_deposit,
        file_format=file_format,
        filename_pattern=data.get("filename_pattern") or defaults.filename_pattern,
        filename_pattern_sent=data.get("filename_pattern_sent") or defaults.filename_pattern_sent,
        character_cleaning=cleaning,
    )


def settings_to_dict(settings: GeneralSettings) -> dict:
    return {
        "root_folder": settings.root_folder,
        "folder_structure": [node_to_dict(n) for n in settings.folder_structure],
        "received_email_deposit_folder": settings.received_email_deposit_folder,
        "sent_email_deposit_folder": settings.sent_email_deposit_folder,
        "email_deposit_folder": settings.email_deposit_folder,
        "file_format": settings.file_format.value,
        "filename_pattern": settings.filename_pattern,
        "filename_pattern_sent": settings.filename_pattern_sent,
        "character_cleaning": {
            "enabled": settings.character_cleaning.enabled,
            "characters_to_clean": dict(settings.character_cleaning.characters_to_clean),
            "replace_with": settings.character_cleaning.replace_with,
        },
    }


def _write_json_atomic(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _read_json(path: Path) -> dict | None:
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SettingsError(f"Cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"{path} must contain a JSON object")
    return data


class SettingsStore:
    """Loads and saves ``GeneralSettings`` and ``DaemonConfig`` as JSON files."""

    def __init__(self, path: Path | None = None, daemon_path: Path | None = None) -> None:
        self.path = Path(path or SETTINGS_PATH)
        self.daemon_path = Path(daemon_path or DAEMON_CONFIG_PATH)

    def load(self) -> GeneralSettings:
        data = _read_json(self.path)
        if data is None:
            return GeneralSettings()
        settings = settings_from_dict(data)
        stored = _rename_keys(data)
        if stored.get("email_deposit_folder") and not stored.get("received_email_deposit_folder"):
            logger.info("Migrated legacy deposit folder %r to received mail", settings.email_deposit_folder)
        return settings

    def save(self, settings: GeneralSettings) -> None:
        _write_json_atomic(self.path, settings_to_dict(settings))

    def load_daemon_config(self) -> DaemonConfig:
        data = _read_json(self.daemon_path) or {}
        defaults = DaemonConfig()
        return DaemonConfig(
            enabled=bool(data.get("enabled", defaults.enabled)),
            sync_interval_minutes=int(data.get("sync_interval_minutes", defaults.sync_interval_minutes)),
            mark_as_read=bool(data.get("mark_as_read", defaults.mark_as_read)),
            max_messages=int(data.get("max_messages", defaults.max_messages)),
        )

    def save_daemon_config(self, config: DaemonConfig) -> None:
        if config.sync_interval_minutes < 1:
            raise SettingsError("sync_interval_minutes must be at least 1")
        _write_json_atomic(self.daemon_path, asdict(config))


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise SettingsError(f"Expected a boolean (on/off), got {value!r}")


def update_setting(settings: GeneralSettings, key: str, value: str) -> GeneralSettings:
    """Return a copy of *settings* with one user-editable key changed."""
    if key not in EDITABLE_KEYS:
        raise SettingsError(f"Unknown setting {key!r}. Editable: {', '.join(EDITABLE_KEYS)}")

    if key == "file_format":
        try:
            return replace(settings, file_format=FileFormat(value.lower()))
        except ValueError as e:
            raise SettingsError(f"Unsupported file format: {value!r}") from e
    if key == "cleaning_enabled":
        cleaning = replace(settings.character_cleaning, enabled=_parse_bool(value))
        return replace(settings, character_cleaning=cleaning)
    if key == "replace_with":
        return replace(settings, character_cleaning=replace(settings.character_cleaning, replace_with=value))
    if key == "root_folder" and value:
        value = os.path.abspath(os.path.expanduser(value))
    return replace(settings, **{key: value})


def set_character_cleaning(settings: GeneralSettings, char: str, enabled: bool) -> GeneralSettings:
    """Return a copy of *settings* with *char* added to or removed from the cleaning set."""
    if len(char) != 1:
        raise SettingsError("Exactly one character is expected")
    characters = dict(settings.character_cleaning.characters_to_clean)
    characters[char] = enabled
    cleaning = replace(settings.character_cleaning, characters_to_clean=characters)
    return replace(settings, character_cleaning=cleaning)


def remove_structure_node(
    settings: GeneralSettings,
    node_id: str,
    directory: SenderDirectory | None = None,
) -> tuple[GeneralSettings, list[str]]:
    """Remove a template node, keeping deposit settings and the directory consistent.

    When a removed folder was selected as a deposit folder, that setting is
    cleared and, if a directory is given, entries pointing into it are pruned.
    Returns the new settings and the logical paths of removed folders.
    """
    tree = FolderTree.from_nodes(settings.folder_structure)
    removed = tree.remove(node_id)
    updated = replace(settings, folder_structure=tree.to_nodes())

    for field_name in ("received_email_deposit_folder", "sent_email_deposit_folder", "email_deposit_folder"):
        current = getattr(updated, field_name)
        if current and "/".join(split_logical_path(current)) in removed:
            logger.info("Clearing %s: folder %r was removed from the template", field_name, current)
            updated = replace(updated, **{field_name: ""})
            if directory is not None:
                directory.prune_deposit_folder(current)

    return updated, removed


def rename_structure_node(settings: GeneralSettings, node_id: str, name: str) -> tuple[GeneralSettings, str, str]:
    """Rename a template node and move deposit settings that live under it.

    Deposit paths equal to the renamed folder, or nested below it, are rewritten
    to the new path. Returns the new settings and the old and new logical paths.
    """
    tree = FolderTree.from_nodes(settings.folder_structure)
    old_path = tree.logical_path(node_id)
    tree.rename(node_id, name)
    new_path = tree.logical_path(node_id)
    updated = replace(settings, folder_structure=tree.to_nodes())

    for field_name in ("received_email_deposit_folder", "sent_email_deposit_folder", "email_deposit_folder"):
        current = "/".join(split_logical_path(getattr(updated, field_name)))
        if current == old_path or current.startswith(old_path + "/"):
            moved = new_path + current[len(old_path):]
            logger.info("Moving %s from %r to %r", field_name, current, moved)
            updated = replace(updated, **{field_name: moved})

    return updated, old_path, new_path
