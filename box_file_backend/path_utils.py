"""Path normalisation utilities for the Box adapter.

Remote nodes are cached under absolute, separator-delimited keys where the
root is the separator alone and no other key carries a trailing separator.
Callers address the adapter with paths relative to an optional prefix; the
helpers here translate between the two forms.

Key utilities:
- Prefix normalisation, application and removal
- Traversal detection
- dirname/basename/join on absolute keys
- Enumeration of the ancestor chain of a key
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .interfaces import InvalidOperationError

if TYPE_CHECKING:
    from collections.abc import Iterator

SEPARATOR = "/"
ROOT = SEPARATOR


def normalize_windows_path(path_str: str) -> str:
    """Normalize Windows backslashes to forward slashes.

    Example:

        >>> normalize_windows_path("dir\\subdir\\file.txt")
        'dir/subdir/file.txt'

    """
    return path_str.replace("\\", SEPARATOR)


def detect_path_traversal_posix(path_parts: tuple[str, ...] | list[str]) -> bool:
    """Return True when any component would escape to a parent directory.

    Example:

        >>> detect_path_traversal_posix(("..", "etc", "passwd"))
        True
        >>> detect_path_traversal_posix(("valid", "relative", "path"))
        False

    """
    return any(part == ".." for part in path_parts)


def split_parts(path: str | None) -> list[str]:
    """Split a path into its meaningful components.

    Empty components and ``.`` are dropped, so ``"a//b/./c/"`` yields
    ``["a", "b", "c"]``.
    """
    if not path:
        return []
    return [
        part
        for part in normalize_windows_path(str(path)).split(SEPARATOR)
        if part and part != "."
    ]


def normalize_prefix(prefix: str | None) -> str:
    """Return the absolute key of a configured sub-root.

    Example:

        >>> normalize_prefix(None)
        '/'
        >>> normalize_prefix("backups/daily/")
        '/backups/daily'

    """
    parts = split_parts(prefix)
    if detect_path_traversal_posix(parts):
        raise InvalidOperationError.path_outside_root(str(prefix))
    return SEPARATOR + SEPARATOR.join(parts)


def apply_path_prefix(prefix: str, path: str | None) -> str:
    """Translate a caller-visible path into an absolute cache key.

    An empty path or the ``.`` sentinel maps to the prefix itself.

    Raises:
        InvalidOperationError: If the path contains ``..`` components.

    """
    parts = split_parts(path)
    if detect_path_traversal_posix(parts):
        raise InvalidOperationError.path_outside_root(str(path))
    if not parts:
        return prefix
    return join_path(prefix, SEPARATOR.join(parts))


def remove_path_prefix(prefix: str, key: str) -> str:
    """Translate an absolute key back into a caller-visible relative path.

    Example:

        >>> remove_path_prefix("/backups", "/backups/2024/db.sql")
        '2024/db.sql'
        >>> remove_path_prefix("/", "/docs")
        'docs'

    """
    if prefix != ROOT and (key == prefix or key.startswith(prefix + SEPARATOR)):
        key = key[len(prefix) :]
    return key.strip(SEPARATOR)


def folder_key(path: str) -> str:
    """Strip trailing separators from a folder path, keeping the bare root."""
    if path == ROOT:
        return path
    stripped = path.rstrip(SEPARATOR)
    return stripped or ROOT


def join_path(parent: str, name: str) -> str:
    """Join a child name onto an absolute parent key."""
    if parent == ROOT:
        return f"{ROOT}{name.strip(SEPARATOR)}"
    return f"{parent}{SEPARATOR}{name.strip(SEPARATOR)}"


def dirname(key: str) -> str:
    """Return the parent key of an absolute key; the root is its own parent."""
    key = folder_key(key)
    if key == ROOT:
        return ROOT
    parent, _, _ = key.rpartition(SEPARATOR)
    return parent or ROOT


def basename(key: str) -> str:
    """Return the final component of a key (empty for the root)."""
    return folder_key(key).rpartition(SEPARATOR)[2]


def iter_prefixes(key: str) -> Iterator[str]:
    """Yield every ancestor key of ``key`` from the root down, inclusive.

    Example:

        >>> list(iter_prefixes("/docs/2024/report.txt"))
        ['/', '/docs', '/docs/2024', '/docs/2024/report.txt']

    """
    current = ROOT
    yield current
    for part in split_parts(key):
        current = join_path(current, part)
        yield current


def is_descendant(key: str, ancestor: str) -> bool:
    """Return True when ``key`` lies strictly below ``ancestor``."""
    if ancestor == ROOT:
        return key != ROOT
    return key.startswith(ancestor + SEPARATOR)
