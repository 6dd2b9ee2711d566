"""Editable folder-structure template.

Nodes are kept in a flat index keyed by id, with parent links and ordered
child lists. Lookups, edits and removals go through the id; ``/``-joined
logical paths are derived on demand for deposit-folder selection.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterator

from gmail_filer.models import FolderStructureNode, NodeType


@dataclass
class _Record:
    id: str
    name: str
    type: NodeType
    parent_id: str | None
    content: str = ""
    child_ids: list[str] = field(default_factory=list)


def new_node_id() -> str:
    return uuid.uuid4().hex


class FolderTree:
    """Arena of template nodes with stable identifiers."""

    def __init__(self) -> None:
        self._nodes: dict[str, _Record] = {}
        self._root_ids: list[str] = []

    # --- conversion ---

    @classmethod
    def from_nodes(cls, nodes: tuple[FolderStructureNode, ...] | list[FolderStructureNode]) -> FolderTree:
        tree = cls()
        for node in nodes:
            tree._load(node, parent_id=None)
        return tree

    def _load(self, node: FolderStructureNode, parent_id: str | None) -> None:
        node_id = node.id if node.id and node.id not in self._nodes else new_node_id()
        self._insert(_Record(node_id, node.name, node.type, parent_id, node.content))
        if node.type == NodeType.FOLDER:
            for child in node.children:
                self._load(child, parent_id=node_id)

    def to_nodes(self) -> tuple[FolderStructureNode, ...]:
        return tuple(self._build(node_id) for node_id in self._root_ids)

    def _build(self, node_id: str) -> FolderStructureNode:
        record = self._nodes[node_id]
        return FolderStructureNode(
            id=record.id,
            name=record.name,
            type=record.type,
            children=tuple(self._build(c) for c in record.child_ids),
            content=record.content,
        )

    # --- edits ---

    def _insert(self, record: _Record) -> None:
        self._nodes[record.id] = record
        if record.parent_id is None:
            self._root_ids.append(record.id)
        else:
            self._nodes[record.parent_id].child_ids.append(record.id)

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not name.strip() or name.strip() in (".", "..") or any(sep in name for sep in "/\\"):
            raise ValueError(f"Invalid template node name: {name!r}")

    def _check_parent(self, parent_id: str | None) -> None:
        if parent_id is None:
            return
        parent = self._nodes.get(parent_id)
        if parent is None:
            raise KeyError(f"Unknown node id: {parent_id}")
        if parent.type != NodeType.FOLDER:
            raise ValueError(f"Node {parent_id} is a file and cannot have children")

    def add_folder(self, name: str, parent_id: str | None = None) -> str:
        """Append a folder under *parent_id* (top level when None). Returns the new id."""
        self._check_name(name)
        self._check_parent(parent_id)
        node_id = new_node_id()
        self._insert(_Record(node_id, name, NodeType.FOLDER, parent_id))
        return node_id

    def add_file(self, name: str, content: str = "", parent_id: str | None = None) -> str:
        """Append a file under *parent_id* (top level when None). Returns the new id."""
        self._check_name(name)
        self._check_parent(parent_id)
        node_id = new_node_id()
        self._insert(_Record(node_id, name, NodeType.FILE, parent_id, content))
        return node_id

    def rename(self, node_id: str, name: str) -> None:
        record = self._require(node_id)
        self._check_name(name)
        record.name = name

    def set_content(self, node_id: str, content: str) -> None:
        record = self._require(node_id)
        if record.type != NodeType.FILE:
            raise ValueError(f"Node {node_id} is a folder and has no content")
        record.content = content

    def remove(self, node_id: str) -> list[str]:
        """Remove a node and its subtree.

        Returns the logical paths of every folder that was removed, computed
        before removal.
        """
        record = self._require(node_id)
        removed_folders = [
            self.logical_path(i) for i in self._subtree_ids(node_id)
            if self._nodes[i].type == NodeType.FOLDER
        ]

        siblings = self._root_ids if record.parent_id is None else self._nodes[record.parent_id].child_ids
        siblings.remove(node_id)
        for i in self._subtree_ids(node_id):
            del self._nodes[i]
        return removed_folders

    # --- queries ---

    def _require(self, node_id: str) -> _Record:
        record = self._nodes.get(node_id)
        if record is None:
            raise KeyError(f"Unknown node id: {node_id}")
        return record

    def _subtree_ids(self, node_id: str) -> list[str]:
        ids = [node_id]
        for child_id in self._nodes[node_id].child_ids:
            ids.extend(self._subtree_ids(child_id))
        return ids

    def get(self, node_id: str) -> FolderStructureNode:
        self._require(node_id)
        return self._build(node_id)

    def parent_of(self, node_id: str) -> str | None:
        return self._require(node_id).parent_id

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def count(self) -> int:
        """Total number of folders and files in the template."""
        return len(self._nodes)

    def logical_path(self, node_id: str) -> str:
        names: list[str] = []
        current: str | None = node_id
        while current is not None:
            record = self._require(current)
            names.append(record.name)
            current = record.parent_id
        return "/".join(reversed(names))

    def walk(self) -> Iterator[tuple[int, str]]:
        """Yield ``(depth, node_id)`` in display order."""

        def _walk(ids: list[str], depth: int) -> Iterator[tuple[int, str]]:
            for node_id in ids:
                yield depth, node_id
                yield from _walk(self._nodes[node_id].child_ids, depth + 1)

        yield from _walk(self._root_ids, 0)

    def folder_paths(self) -> list[str]:
        """Logical paths of every folder, usable as deposit-folder names."""
        return [
            self.logical_path(node_id)
            for _, node_id in self.walk()
            if self._nodes[node_id].type == NodeType.FOLDER
        ]

    def find_by_path(self, logical_path: str) -> str | None:
        """Return the id of the node whose logical path is *logical_path*, if any."""
        for _, node_id in self.walk():
            if self.logical_path(node_id) == logical_path:
                return node_id
        return None
