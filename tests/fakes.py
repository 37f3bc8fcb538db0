"""Test doubles used across Box adapter tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from box_file_backend.client import FolderAlreadyExists, RemoteCallError
from box_file_backend.utils import coerce_to_bytes

MODIFIED_AT = "2024-03-01T12:00:00-08:00"


@dataclass
class _Node:
    """In-memory representation of a Box file or folder."""

    id: str
    name: str
    type: str
    parent_id: str | None
    content: bytes = b""
    modified_at: str = MODIFIED_AT
    versions: int = 1
    children: list[str] = field(default_factory=list)


class FakeBoxClient:
    """Minimal Box client emulation suitable for adapter tests.

    Every public call is appended to :attr:`calls` as ``(name, args)`` so
    tests can assert how many remote round trips an operation needed.
    Setting ``failures["method_name"]`` to an exception makes the next call
    to that method raise it.
    """

    def __init__(self) -> None:
        """Initialise the tree with the Box root folder."""
        self._nodes: dict[str, _Node] = {
            "0": _Node(id="0", name="All Files", type="folder", parent_id=None),
        }
        self._counter = 1000
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.failures: dict[str, Exception] = {}

    # -- seeding helpers (not recorded) ---------------------------------

    def add_folder(self, parent_id: str, name: str) -> str:
        """Create a folder directly in the fake tree and return its id."""
        return self._insert(parent_id, name, "folder").id

    def add_file(self, parent_id: str, name: str, content: bytes = b"") -> str:
        """Create a file directly in the fake tree and return its id."""
        node = self._insert(parent_id, name, "file")
        node.content = content
        return node.id

    def remove(self, node_id: str) -> None:
        """Delete a node behind the adapter's back."""
        self._drop(node_id)

    def find(self, path: str) -> _Node | None:
        """Return the node at an absolute path such as ``/docs/a.txt``."""
        node = self._nodes["0"]
        for part in [p for p in path.split("/") if p]:
            match = self._child_named(node.id, part)
            if match is None:
                return None
            node = match
        return node

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        """Return the argument tuples of every recorded call to ``name``."""
        return [args for call, args in self.calls if call == name]

    # -- Box API surface ------------------------------------------------

    def list_folder_items(self, folder_id: str) -> list[dict[str, Any]]:
        """Return the children of a folder."""
        folder = self._enter("list_folder_items", folder_id, kind="folder")
        return [self._describe(self._nodes[child]) for child in folder.children]

    def get_file_info(self, file_id: str) -> dict[str, Any]:
        """Return the description of a file."""
        return self._describe(self._enter("get_file_info", file_id, kind="file"))

    def get_folder_info(self, folder_id: str) -> dict[str, Any]:
        """Return the description of a folder."""
        return self._describe(
            self._enter("get_folder_info", folder_id, kind="folder"),
        )

    def upload_file(self, name: str, parent_id: str, data: bytes) -> dict[str, Any]:
        """Store a new file under ``parent_id``."""
        self._enter("upload_file", parent_id, name, data, kind="folder")
        if self._child_named(parent_id, name) is not None:
            message = f"Item {name!r} already exists"
            raise RemoteCallError(message, status_code=409)
        node = self._insert(parent_id, name, "file")
        node.content = coerce_to_bytes(data)
        return self._describe(node)

    def upload_file_version(self, file_id: str, data: bytes) -> dict[str, Any]:
        """Replace the content of an existing file."""
        node = self._enter("upload_file_version", file_id, data, kind="file")
        node.content = coerce_to_bytes(data)
        node.versions += 1
        node.modified_at = _now()
        return self._describe(node)

    def create_folder(self, name: str, parent_id: str) -> dict[str, Any]:
        """Create a folder, refusing duplicate names like Box does."""
        self._enter("create_folder", name, parent_id, kind="folder", node_arg=1)
        existing = self._child_named(parent_id, name)
        if existing is not None:
            message = f"Folder {name!r} already exists"
            raise FolderAlreadyExists(
                message,
                existing_id=existing.id,
                existing_type=existing.type,
                status_code=409,
            )
        return self._describe(self._insert(parent_id, name, "folder"))

    def delete_file(self, file_id: str) -> bool:
        """Remove a file."""
        self._enter("delete_file", file_id, kind="file")
        self._drop(file_id)
        return True

    def delete_folder(self, folder_id: str, *, recursive: bool = True) -> bool:
        """Remove a folder; non-empty folders require ``recursive``."""
        folder = self._enter("delete_folder", folder_id, recursive, kind="folder")
        if folder.children and not recursive:
            message = "Folder is not empty"
            raise RemoteCallError(message, status_code=400)
        self._drop(folder_id)
        return True

    def update_file_info(
        self,
        file_id: str,
        *,
        name: str | None = None,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        """Rename and/or move a file."""
        node = self._enter("update_file_info", file_id, name, parent_id, kind="file")
        target_parent = parent_id if parent_id is not None else node.parent_id
        target_name = name if name is not None else node.name
        if target_parent not in self._nodes:
            message = f"Unknown folder {target_parent}"
            raise RemoteCallError(message, status_code=404)
        clash = self._child_named(target_parent, target_name)
        if clash is not None and clash.id != node.id:
            message = f"Item {target_name!r} already exists"
            raise RemoteCallError(message, status_code=409)
        self._nodes[node.parent_id].children.remove(node.id)
        self._nodes[target_parent].children.append(node.id)
        node.parent_id = target_parent
        node.name = target_name
        return self._describe(node)

    def copy_file(
        self,
        file_id: str,
        dest_folder_id: str,
        *,
        name: str | None = None,
    ) -> dict[str, Any]:
        """Duplicate a file into ``dest_folder_id``."""
        node = self._enter("copy_file", file_id, dest_folder_id, name, kind="file")
        if dest_folder_id not in self._nodes:
            message = f"Unknown folder {dest_folder_id}"
            raise RemoteCallError(message, status_code=404)
        copy_name = name if name is not None else node.name
        if self._child_named(dest_folder_id, copy_name) is not None:
            message = f"Item {copy_name!r} already exists"
            raise RemoteCallError(message, status_code=409)
        copy = self._insert(dest_folder_id, copy_name, "file")
        copy.content = node.content
        return self._describe(copy)

    def download_file(self, file_id: str) -> str:
        """Return the location the content would be redirected to."""
        node = self._enter("download_file", file_id, kind="file")
        return f"https://dl.boxcloud.test/{node.id}"

    def fetch(self, location: str) -> bytes:
        """Return the content behind a download location."""
        self._record("fetch", location)
        file_id = location.rsplit("/", 1)[-1]
        return self._nodes[file_id].content

    # -- internals ------------------------------------------------------

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        failure = self.failures.pop(name, None)
        if failure is not None:
            raise failure

    def _enter(self, name: str, *args: Any, kind: str, node_arg: int = 0) -> _Node:
        self._record(name, *args)
        node = self._nodes.get(str(args[node_arg]))
        if node is None or node.type != kind:
            message = f"No {kind} with id {args[node_arg]}"
            raise RemoteCallError(message, status_code=404)
        return node

    def _insert(self, parent_id: str, name: str, kind: str) -> _Node:
        self._counter += 1
        node = _Node(
            id=str(self._counter),
            name=name,
            type=kind,
            parent_id=str(parent_id),
            modified_at=_now(),
        )
        self._nodes[node.id] = node
        self._nodes[str(parent_id)].children.append(node.id)
        return node

    def _drop(self, node_id: str) -> None:
        node = self._nodes.pop(node_id)
        for child in list(node.children):
            self._drop(child)
        if node.parent_id is not None and node.parent_id in self._nodes:
            self._nodes[node.parent_id].children.remove(node_id)

    def _child_named(self, parent_id: str, name: str) -> _Node | None:
        parent = self._nodes.get(str(parent_id))
        if parent is None:
            return None
        for child_id in parent.children:
            child = self._nodes[child_id]
            if child.name == name:
                return child
        return None

    @staticmethod
    def _describe(node: _Node) -> dict[str, Any]:
        return {
            "id": node.id,
            "type": node.type,
            "name": node.name,
            "size": len(node.content),
            "modified_at": node.modified_at,
        }


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
