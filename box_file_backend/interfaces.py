"""Core interfaces and error types for the Box filesystem adapter."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, BinaryIO, Literal, Union

if TYPE_CHECKING:
    from collections.abc import Mapping

PathLike = str
Contents = Union[bytes, str, BinaryIO]
Metadata = dict[str, Any]


class PathKind(str, Enum):
    """Type of a remote node as reported by the storage API."""

    FILE = "file"
    FOLDER = "folder"

    @classmethod
    def from_remote(cls, value: str | None) -> PathKind:
        """Map a remote ``type`` field onto a kind.

        Anything that is not a folder (files, web links) is treated as a file.
        """
        return cls.FOLDER if value == "folder" else cls.FILE


class FileBackendError(RuntimeError):
    """Base exception for adapter operations."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
    ) -> None:
        """Initialise the base error with an optional path context."""
        detail = message if path is None else ": ".join((message, path))
        super().__init__(detail)
        self.message = message
        self.path = path


class NotFoundError(FileBackendError):
    """Raised when a path does not resolve to a node of the expected kind."""

    def __init__(self, path: str, *, kind: PathKind | None = None) -> None:
        """Create a not-found error for the provided path."""
        message = "Path not found" if kind is None else f"No {kind.value} at path"
        super().__init__(message, path=path)
        self.kind = kind


class AlreadyExistsError(FileBackendError):
    """Raised when attempting to create a resource that already exists."""

    def __init__(self, path: str, *, reason: str | None = None) -> None:
        """Create an already-exists error with an optional reason."""
        super().__init__(reason or "Path already exists", path=path)


class InvalidOperationError(FileBackendError):
    """Raised when an operation is not allowed for the given path."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        """Initialise an invalid operation error scoped to a path."""
        super().__init__(message, path=path)

    @classmethod
    def path_outside_root(cls, path: str) -> InvalidOperationError:
        """Return an error showing the path escapes the adapter root."""
        return cls("Path escapes adapter root", path=path)

    @classmethod
    def root_path_not_allowed(cls, path: str) -> InvalidOperationError:
        """Return an error when the adapter root is targeted explicitly."""
        return cls("Path cannot refer to adapter root", path=path)


class AmbiguousDestinationError(InvalidOperationError):
    """Raised when a copy or rename target is neither a folder nor a file path."""

    def __init__(self, path: str) -> None:
        """Create an error for a destination that cannot be interpreted."""
        super().__init__("Destination resolves to no existing folder", path=path)


class FilesystemAdapter(ABC):
    """Contract of a pluggable storage backend for the filesystem layer.

    Every operation accepts paths relative to the adapter root. Failures are
    reported as ``False`` rather than raised, successes as ``True`` or a
    metadata dictionary.
    """

    @abstractmethod
    def write(
        self,
        path: PathLike,
        contents: Contents,
        config: Mapping[str, Any] | None = None,
    ) -> Metadata | Literal[False]:
        """Write a new file."""

    @abstractmethod
    def update(
        self,
        path: PathLike,
        contents: Contents,
        config: Mapping[str, Any] | None = None,
    ) -> Metadata | Literal[False]:
        """Update an existing file, writing it when it does not exist."""

    @abstractmethod
    def rename(self, path: PathLike, new_path: PathLike) -> bool:
        """Rename or move a file."""

    @abstractmethod
    def copy(self, path: PathLike, new_path: PathLike) -> bool:
        """Copy a file."""

    @abstractmethod
    def delete(self, path: PathLike) -> bool:
        """Delete a file."""

    @abstractmethod
    def delete_dir(self, path: PathLike) -> bool:
        """Delete a directory and everything below it."""

    @abstractmethod
    def create_dir(
        self,
        path: PathLike,
        config: Mapping[str, Any] | None = None,
    ) -> bool:
        """Create a directory, including missing ancestors."""

    @abstractmethod
    def read(self, path: PathLike) -> Metadata | Literal[False]:
        """Read a file; the payload is returned under ``contents``."""

    @abstractmethod
    def has(self, path: PathLike) -> bool:
        """Check whether a file or directory exists."""

    @abstractmethod
    def list_contents(
        self,
        path: PathLike = "",
        recursive: bool = False,
    ) -> list[Metadata] | Literal[False]:
        """List the contents of a directory."""

    @abstractmethod
    def get_metadata(self, path: PathLike) -> Metadata | Literal[False]:
        """Get all metadata of a file or directory."""

    def get_size(self, path: PathLike) -> Metadata | Literal[False]:
        """Get the size of a file."""
        return self.get_metadata(path)

    def get_timestamp(self, path: PathLike) -> Metadata | Literal[False]:
        """Get the last-modified timestamp of a file or directory."""
        return self.get_metadata(path)

    @abstractmethod
    def get_mimetype(self, path: PathLike) -> Metadata | Literal[False]:
        """Get the mimetype of a file."""
