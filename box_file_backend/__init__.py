"""Box content storage as a pluggable filesystem adapter.

This package lets a generic filesystem layer (read, write, delete, list and
metadata operations addressed by path) store its files in Box, which
addresses files and folders by opaque numeric identifiers instead.

Core Components:
    - FilesystemAdapter: Abstract contract every storage adapter implements
    - BoxAdapter: Box backed implementation of that contract
    - PathResolver: Lazily populated cache mapping paths to Box identifiers
    - BoxApiClient: Thin authenticated client for the Box REST API

Quick Start:

    >>> from box_file_backend import BoxAdapter
    >>> adapter = BoxAdapter({"token": "<access token>", "prefix": "uploads"})
    >>> adapter.write("docs/readme.txt", b"Hello, world!")["size"]
    13
    >>> adapter.read("docs/readme.txt")["contents"]
    b'Hello, world!'
    >>> adapter.has("docs")
    True

Error Handling:

    Public operations never raise for remote or lookup failures; they return
    ``False`` and log the underlying error through the ``box_file_backend``
    loggers. The typed errors (``NotFoundError``, ``RemoteCallError``, ...)
    surface when the resolver or client are used directly.

Supported Operations:
    - write() / update() - Upload new files or new versions
    - read() - Download file contents
    - rename() / copy() - Move and duplicate files
    - delete() / delete_dir() - Remove files and folder trees
    - create_dir() - Create folders, including ancestors
    - has() / get_metadata() - Inspect files and folders
    - list_contents() - List a folder's direct children
    - get_size() / get_mimetype() / get_timestamp() - Metadata shortcuts

"""

from .adapter import BoxAdapter
from .client import (
    BoxApiClient,
    FolderAlreadyExists,
    RemoteCallError,
    ResponseParseError,
)
from .factory import register_adapter_factory, resolve_adapter
from .interfaces import (
    AlreadyExistsError,
    AmbiguousDestinationError,
    FileBackendError,
    FilesystemAdapter,
    InvalidOperationError,
    NotFoundError,
    PathKind,
    PathLike,
)
from .resolver import ROOT_ID, PathCache, PathEntry, PathResolver

__all__ = [
    "ROOT_ID",
    "AlreadyExistsError",
    "AmbiguousDestinationError",
    "BoxAdapter",
    "BoxApiClient",
    "FileBackendError",
    "FilesystemAdapter",
    "FolderAlreadyExists",
    "InvalidOperationError",
    "NotFoundError",
    "PathCache",
    "PathEntry",
    "PathKind",
    "PathLike",
    "PathResolver",
    "RemoteCallError",
    "ResponseParseError",
    "register_adapter_factory",
    "resolve_adapter",
]
