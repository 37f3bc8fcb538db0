"""Path to remote identifier resolution for the Box adapter.

Box addresses every file and folder by an opaque identifier and offers no
way to look a node up by its path. The resolver therefore keeps a cache of
absolute path keys and rediscovers unknown segments by listing the children
of their parent folder, walking down from the root:

    >>> resolver = PathResolver(client)
    >>> resolver.resolve("/docs/report.txt", PathKind.FILE)  # lists "/" then "/docs"
    '12345'
    >>> resolver.resolve("/docs/report.txt", PathKind.FILE)  # cache hit, no network
    '12345'

The cache is a positive, possibly stale cache. A hit short-circuits the
remote lookup; a miss always lists the parent folder before the path is
reported missing. The adapter keeps it current by calling :meth:`remember`,
:meth:`forget` and :meth:`move` after every mutating operation.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from .client import RemoteCallError
from .interfaces import InvalidOperationError, PathKind
from .path_utils import (
    ROOT,
    SEPARATOR,
    apply_path_prefix,
    is_descendant,
    iter_prefixes,
    join_path,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

ROOT_ID = "0"

_NOT_FOUND = 404


@dataclass(frozen=True)
class PathEntry:
    """Cached location of a remote node."""

    path: str
    remote_id: str
    kind: PathKind

    @property
    def is_dir(self) -> bool:
        """Whether the entry is a folder."""
        return self.kind is PathKind.FOLDER


class SupportsFolderListing(Protocol):
    """Remote client capable of listing the children of a folder."""

    def list_folder_items(self, folder_id: str) -> list[dict[str, Any]]:
        """Return ``id``, ``name`` and ``type`` for each child of a folder."""
        ...


class PathCache:
    """Mapping of absolute path keys to :class:`PathEntry` objects.

    The root is always present with identifier ``"0"``. All access goes
    through a re-entrant lock so a single adapter may serve several threads.
    """

    def __init__(self) -> None:
        """Create a cache holding only the root folder."""
        self.lock = threading.RLock()
        self._entries: dict[str, PathEntry] = {}
        self.clear()

    def __contains__(self, path: object) -> bool:
        with self.lock:
            return path in self._entries

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[PathEntry]:
        with self.lock:
            return iter(list(self._entries.values()))

    def clear(self) -> None:
        """Drop every entry except the root."""
        with self.lock:
            self._entries = {ROOT: PathEntry(ROOT, ROOT_ID, PathKind.FOLDER)}

    def get(self, path: str) -> PathEntry | None:
        """Return the entry cached for ``path`` regardless of its kind."""
        with self.lock:
            return self._entries.get(path)

    def match(self, path: str, kind: PathKind) -> str | None:
        """Return the identifier for ``path`` only when the kind matches."""
        with self.lock:
            entry = self._entries.get(path)
        if entry is not None and entry.kind is kind:
            return entry.remote_id
        return None

    def put(self, path: str, remote_id: Any, kind: PathKind) -> PathEntry:
        """Insert or overwrite the entry for ``path``."""
        if path == ROOT:
            return self._entries[ROOT]
        entry = PathEntry(path, str(remote_id), kind)
        with self.lock:
            previous = self._entries.get(path)
            if previous is not None and previous.kind is not kind:
                # A file replaced a folder (or vice versa): nothing cached
                # below the old node can still be valid.
                self._evict_descendants(path)
            self._entries[path] = entry
        return entry

    def evict(self, path: str) -> list[PathEntry]:
        """Remove ``path`` and everything cached below it.

        The root itself is never removed; evicting it clears its descendants.
        """
        with self.lock:
            removed = self._evict_descendants(path)
            if path != ROOT:
                entry = self._entries.pop(path, None)
                if entry is not None:
                    removed.append(entry)
        return removed

    def move(self, old: str, new: str) -> None:
        """Re-key ``old`` and its cached subtree under ``new``."""
        if old == new or old == ROOT:
            return
        with self.lock:
            moved = [
                entry
                for key, entry in self._entries.items()
                if key == old or is_descendant(key, old)
            ]
            self.evict(old)
            self.evict(new)
            for entry in moved:
                key = new + entry.path[len(old) :]
                self._entries[key] = PathEntry(key, entry.remote_id, entry.kind)

    def replace_children(self, path: str, entries: Iterable[PathEntry]) -> None:
        """Make ``entries`` the complete set of cached children of ``path``.

        Children missing from ``entries`` are evicted with their subtrees in
        a single pass over the cache.
        """
        fresh = {entry.path: entry for entry in entries}
        with self.lock:
            doomed = []
            for key in self._entries:
                child = _child_key(path, key)
                if child is not None and child not in fresh:
                    doomed.append(key)
            for key in doomed:
                del self._entries[key]
            for entry in fresh.values():
                self.put(entry.path, entry.remote_id, entry.kind)

    def _evict_descendants(self, path: str) -> list[PathEntry]:
        doomed = [key for key in self._entries if is_descendant(key, path)]
        return [self._entries.pop(key) for key in doomed]


def _child_key(parent: str, key: str) -> str | None:
    """Return the direct child of ``parent`` that ``key`` lies in or below."""
    if not is_descendant(key, parent):
        return None
    head = key[len(parent) :].lstrip(SEPARATOR).split(SEPARATOR, 1)[0]
    return join_path(parent, head)


class PathResolver:
    """Resolve absolute paths to Box identifiers, listing folders on demand."""

    def __init__(
        self,
        client: SupportsFolderListing,
        *,
        prefix: str = ROOT,
        cache: PathCache | None = None,
    ) -> None:
        """Bind the resolver to a client and the configured root prefix."""
        self._client = client
        self._prefix = prefix
        self.cache = cache if cache is not None else PathCache()

    @property
    def prefix(self) -> str:
        """Absolute key of the configured sub-root."""
        return self._prefix

    def resolve(self, path: str, kind: PathKind) -> str | None:
        """Return the identifier of ``path`` if it exists as ``kind``.

        Returns ``None`` when the path does not exist with the requested kind,
        and also when a remote call fails while walking towards it.
        """
        try:
            target = self._normalise(path)
        except InvalidOperationError as exc:
            logger.debug("Cannot resolve %s: %s", path, exc)
            return None
        with self.cache.lock:
            remote_id = self.cache.match(target, kind)
            if remote_id is not None:
                return remote_id
            logger.debug("Cache miss for %s %s", kind.value, target)
            try:
                return self._walk(target, kind)
            except RemoteCallError as exc:
                logger.warning("Could not resolve %s %s: %s", kind.value, target, exc)
                return None

    def resolve_file(self, path: str) -> str | None:
        """Return the identifier of the file at ``path``."""
        return self.resolve(path, PathKind.FILE)

    def resolve_folder(self, path: str) -> str | None:
        """Return the identifier of the folder at ``path``."""
        return self.resolve(path, PathKind.FOLDER)

    def expand(self, path: str, folder_id: str) -> list[dict[str, Any]]:
        """List a folder remotely and refresh the cached set of its children.

        Returns the raw child objects reported by the remote API.
        """
        items = self._client.list_folder_items(folder_id)
        self.cache.replace_children(
            path,
            (
                PathEntry(
                    join_path(path, item["name"]),
                    str(item["id"]),
                    PathKind.from_remote(item.get("type")),
                )
                for item in items
            ),
        )
        return items

    def lookup(self, path: str) -> PathEntry | None:
        """Return the cached entry for ``path`` without any remote call."""
        return self.cache.get(path)

    def remember(self, path: str, remote_id: Any, kind: PathKind) -> PathEntry:
        """Record a node the adapter just created, copied or moved."""
        return self.cache.put(path, remote_id, kind)

    def forget(self, path: str) -> None:
        """Evict ``path`` and its cached subtree after a delete."""
        removed = self.cache.evict(path)
        if removed:
            logger.debug("Evicted %d cache entr(ies) under %s", len(removed), path)

    def move(self, old: str, new: str) -> None:
        """Re-key a moved node and its cached subtree."""
        self.cache.move(old, new)

    def clear(self) -> None:
        """Forget everything except the root."""
        self.cache.clear()

    def _walk(self, target: str, kind: PathKind) -> str | None:
        prefixes = list(iter_prefixes(target))
        relisted: set[str] = set()
        index = 0
        while index < len(prefixes):
            prefix = prefixes[index]
            entry = self.cache.get(prefix)
            if entry is None:
                # The parent listing did not report this segment.
                break
            if prefix == target:
                if entry.kind is kind:
                    return entry.remote_id
                break
            if entry.kind is not PathKind.FOLDER:
                break
            following = self.cache.get(prefixes[index + 1])
            if (
                following is not None
                and following.kind is PathKind.FOLDER
                and following.path != target
            ):
                index += 1
                continue
            logger.debug("Listing folder %s (%s)", prefix, entry.remote_id)
            try:
                self.expand(prefix, entry.remote_id)
            except RemoteCallError as exc:
                if (
                    exc.status_code != _NOT_FOUND
                    or prefix == ROOT
                    or prefix in relisted
                ):
                    raise
                # Stale folder id: relist the parent and retry this level.
                logger.debug(
                    "Folder %s (%s) is gone, relisting parent",
                    prefix,
                    entry.remote_id,
                )
                relisted.add(prefix)
                self.cache.evict(prefix)
                index -= 1
                continue
            index += 1
        return self.cache.match(target, kind)

    def _normalise(self, path: str) -> str:
        """Return the canonical absolute key for ``path``.

        Absolute paths are taken from the Box root, relative ones from the
        prefix; duplicate and trailing separators are dropped.
        """
        base = ROOT if path and path.startswith(SEPARATOR) else self._prefix
        return apply_path_prefix(base, path)
