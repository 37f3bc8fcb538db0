"""Box backed implementation of the filesystem adapter contract."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Literal

from .client import (
    DEFAULT_API_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    DEFAULT_UPLOAD_URL,
    BoxApiClient,
    FolderAlreadyExists,
    RemoteCallError,
)
from .compat import false_on_error, log_backend_exception
from .interfaces import (
    AlreadyExistsError,
    AmbiguousDestinationError,
    Contents,
    FilesystemAdapter,
    InvalidOperationError,
    Metadata,
    NotFoundError,
    PathKind,
    PathLike,
)
from .path_utils import (
    ROOT,
    apply_path_prefix,
    basename,
    dirname,
    iter_prefixes,
    join_path,
    normalize_prefix,
    remove_path_prefix,
)
from .resolver import PathResolver
from .utils import coerce_to_bytes, guess_mimetype, timestamp_from_iso

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping
else:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_NOT_FOUND = 404
_CONFLICT = 409


class BoxAdapter(FilesystemAdapter):
    """Filesystem adapter storing files in Box.

    Paths are resolved to Box identifiers through a :class:`PathResolver`
    that lists folders lazily and caches what it learns. Each public
    operation then issues a single Box call and keeps the cache in step
    with the change it made.

    Example:

        >>> adapter = BoxAdapter({"token": "...", "prefix": "backups"})
        >>> adapter.write("2024/db.sql", b"-- dump")["size"]
        7
        >>> adapter.read("2024/db.sql")["contents"]
        b'-- dump'

    """

    def __init__(
        self,
        connection_info: Mapping[str, Any],
        *,
        client: Any | None = None,
    ) -> None:
        """Initialise the adapter from Box connection parameters.

        Recognised keys are ``token`` (required unless ``client`` is given),
        ``prefix``, ``timeout``, ``max_retries``, ``api_url`` and
        ``upload_url``.
        """
        if not isinstance(connection_info, Mapping):
            message = "connection_info must be a mapping"
            raise TypeError(message)

        self._prefix = normalize_prefix(connection_info.get("prefix"))

        if client is not None:
            self._client = client
        else:
            token = connection_info.get("token")
            if not token:
                message = "Missing 'token' in connection_info"
                raise ValueError(message)
            self._client = BoxApiClient(
                str(token),
                api_url=str(connection_info.get("api_url", DEFAULT_API_URL)),
                upload_url=str(connection_info.get("upload_url", DEFAULT_UPLOAD_URL)),
                timeout=float(connection_info.get("timeout", DEFAULT_TIMEOUT)),
                max_retries=int(
                    connection_info.get("max_retries", DEFAULT_MAX_RETRIES),
                ),
            )

        self._resolver = PathResolver(self._client, prefix=self._prefix)

    @property
    def prefix(self) -> str:
        """Absolute Box path every operation is scoped under."""
        return self._prefix

    @property
    def client(self) -> Any:
        """The Box client used for remote calls."""
        return self._client

    @property
    def resolver(self) -> PathResolver:
        """The path resolver and its cache."""
        return self._resolver

    # -- writing -------------------------------------------------------

    @false_on_error
    def write(
        self,
        path: PathLike,
        contents: Contents,
        config: Mapping[str, Any] | None = None,
    ) -> Metadata | Literal[False]:
        """Upload a new file, creating missing parent folders first."""
        key = self._file_key(path)
        payload = coerce_to_bytes(contents)

        try:
            created = self._upload(key, payload)
        except RemoteCallError as exc:
            if exc.status_code != _NOT_FOUND:
                raise
            parent = dirname(key)
            logger.debug("Folder %s is gone, resolving again", parent)
            self._resolver.forget(parent)
            created = self._upload(key, payload)
        self._resolver.remember(key, created["id"], PathKind.FILE)
        logger.debug("Uploaded %s as file %s", key, created["id"])
        return self._file_record(key, created, payload)

    @false_on_error
    def update(
        self,
        path: PathLike,
        contents: Contents,
        config: Mapping[str, Any] | None = None,
    ) -> Metadata | Literal[False]:
        """Upload a new version of a file, or write it if it does not exist."""
        key = self._file_key(path)
        payload = coerce_to_bytes(contents)

        file_id = self._resolver.resolve_file(key)
        if file_id is not None:
            try:
                with self._forget_if_missing(key):
                    updated = self._client.upload_file_version(file_id, payload)
            except RemoteCallError as exc:
                log_backend_exception("update", exc)
            else:
                return self._file_record(key, updated, payload)

        return self.write(path, payload, config)

    @false_on_error
    def rename(self, path: PathLike, new_path: PathLike) -> bool:
        """Rename a file, moving it when the parent folder changes."""
        key = self._file_key(path)
        new_key = self._file_key(new_path)
        file_id = self._require(key, PathKind.FILE)

        old_parent_id = self._resolver.resolve_folder(dirname(key))
        new_parent_id = self._require(dirname(new_key), PathKind.FOLDER)

        with self._forget_if_missing(key):
            self._client.update_file_info(
                file_id,
                name=basename(new_key),
                parent_id=new_parent_id if new_parent_id != old_parent_id else None,
            )
        self._resolver.move(key, new_key)
        return True

    @false_on_error
    def copy(self, path: PathLike, new_path: PathLike) -> bool:
        """Copy a file into a folder, or to a new file path.

        When ``new_path`` names an existing folder the file is copied into it
        under its current name; otherwise ``new_path`` is taken as the full
        path of the copy, whose parent folder must exist.
        """
        key = self._file_key(path)
        file_id = self._require(key, PathKind.FILE)
        destination = self._key(new_path)

        folder_id = self._resolver.resolve_folder(destination)
        if folder_id is not None:
            target = join_path(destination, basename(key))
            with self._forget_if_missing(key):
                copied = self._client.copy_file(file_id, folder_id)
        else:
            parent_id = self._resolver.resolve_folder(dirname(destination))
            if parent_id is None or destination == self._prefix:
                raise AmbiguousDestinationError(destination)
            target = destination
            with self._forget_if_missing(key):
                copied = self._client.copy_file(
                    file_id,
                    parent_id,
                    name=basename(destination),
                )

        if copied.get("id") is not None:
            self._resolver.remember(target, copied["id"], PathKind.FILE)
        return True

    @false_on_error
    def delete(self, path: PathLike) -> bool:
        """Delete a file."""
        key = self._file_key(path)
        file_id = self._require(key, PathKind.FILE)
        with self._forget_if_missing(key):
            self._client.delete_file(file_id)
        self._resolver.forget(key)
        return True

    @false_on_error
    def delete_dir(self, path: PathLike) -> bool:
        """Delete a folder together with everything below it."""
        key = self._key(path)
        if key == self._prefix:
            raise InvalidOperationError.root_path_not_allowed(str(path))
        folder_id = self._require(key, PathKind.FOLDER)
        with self._forget_if_missing(key):
            self._client.delete_folder(folder_id, recursive=True)
        self._resolver.forget(key)
        return True

    @false_on_error
    def create_dir(
        self,
        path: PathLike,
        config: Mapping[str, Any] | None = None,
    ) -> bool:
        """Create a folder and any missing ancestors.

        Succeeds without creating anything when the folder already exists.
        """
        self._create_folders(self._key(path))
        return True

    # -- reading -------------------------------------------------------

    @false_on_error
    def read(self, path: PathLike) -> Metadata | Literal[False]:
        """Download a file; Box redirects the download to its content host."""
        key = self._file_key(path)
        location = self._call_fresh(key, PathKind.FILE, self._client.download_file)
        contents = self._client.fetch(location)
        return {"type": "file", "path": self._visible(key), "contents": contents}

    def has(self, path: PathLike) -> bool:
        """Check whether a file or folder exists at ``path``."""
        return bool(self.get_metadata(path))

    @false_on_error
    def list_contents(
        self,
        path: PathLike = "",
        recursive: bool = False,
    ) -> list[Metadata] | Literal[False]:
        """List the direct children of a folder.

        The ``recursive`` flag is accepted for compatibility but only one
        level is ever listed.
        """
        key = self._key(path)
        if recursive:
            logger.debug("Recursive listing unsupported, listing %s one level", key)
        items = self._call_fresh(
            key,
            PathKind.FOLDER,
            lambda folder_id: self._resolver.expand(key, folder_id),
        )
        return [self._listing_record(key, item) for item in items]

    @false_on_error
    def get_metadata(self, path: PathLike) -> Metadata | Literal[False]:
        """Return metadata for a file, or for a folder if no file matches."""
        key = self._key(path)

        if self._resolver.resolve_file(key) is not None:
            info = self._call_fresh(key, PathKind.FILE, self._client.get_file_info)
            return {
                "basename": basename(key),
                "path": self._visible(key),
                "size": int(info.get("size") or 0),
                "type": "file",
                "timestamp": timestamp_from_iso(info.get("modified_at")),
            }

        info = self._call_fresh(key, PathKind.FOLDER, self._client.get_folder_info)
        return {
            "basename": basename(key),
            "path": self._visible(key),
            "type": "dir",
            "timestamp": timestamp_from_iso(info.get("modified_at")),
        }

    def get_mimetype(self, path: PathLike) -> Metadata | Literal[False]:
        """Return file metadata extended with a mimetype guessed from its name."""
        metadata = self.get_metadata(path)
        if not metadata or metadata["type"] != "file":
            return False
        metadata["mimetype"] = guess_mimetype(metadata["basename"])
        return metadata

    # -- internals -----------------------------------------------------

    def _upload(self, key: str, payload: bytes) -> dict[str, Any]:
        parent_id = self._create_folders(dirname(key))
        try:
            return self._client.upload_file(basename(key), parent_id, payload)
        except RemoteCallError as exc:
            if exc.status_code == _CONFLICT:
                raise AlreadyExistsError(self._visible(key)) from exc
            raise

    def _create_folders(self, key: str) -> str:
        """Create every missing folder along ``key`` and return the last id.

        Once one level is missing everything below it is created without
        further lookups.
        """
        parent_id = ""
        missing = False
        for prefix in iter_prefixes(key):
            folder_id = None if missing else self._resolver.resolve_folder(prefix)
            if folder_id is None:
                missing = True
                folder_id = self._make_folder(prefix, parent_id)
            parent_id = folder_id
        return parent_id

    def _make_folder(self, key: str, parent_id: str) -> str:
        try:
            created = self._client.create_folder(basename(key), parent_id)
        except FolderAlreadyExists as exc:
            # Another writer created it first; use the existing folder.
            logger.debug("Folder %s already exists", key)
            if exc.existing_id is not None and exc.existing_type == "folder":
                return self._resolver.remember(
                    key,
                    exc.existing_id,
                    PathKind.FOLDER,
                ).remote_id
            folder_id = self._resolver.resolve_folder(key)
            if folder_id is None:
                raise
            return folder_id
        logger.debug("Created folder %s as %s", key, created["id"])
        return self._resolver.remember(key, created["id"], PathKind.FOLDER).remote_id

    def _require(self, key: str, kind: PathKind) -> str:
        remote_id = self._resolver.resolve(key, kind)
        if remote_id is None:
            raise NotFoundError(self._visible(key) or ROOT, kind=kind)
        return remote_id

    def _call_fresh(
        self,
        key: str,
        kind: PathKind,
        call: Callable[[str], Any],
    ) -> Any:
        """Call ``call`` with the id of ``key``, resolving again once on a 404.

        Another client may have deleted and recreated the node, leaving a
        stale identifier in the cache.
        """
        remote_id = self._require(key, kind)
        try:
            return call(remote_id)
        except RemoteCallError as exc:
            if exc.status_code != _NOT_FOUND:
                raise
            logger.debug("Cached %s %s is gone, resolving again", kind.value, key)
            self._resolver.forget(key)
        with self._forget_if_missing(key):
            return call(self._require(key, kind))

    @contextmanager
    def _forget_if_missing(self, key: str) -> Iterator[None]:
        """Evict a cached path whose identifier Box no longer knows."""
        try:
            yield
        except RemoteCallError as exc:
            if exc.status_code == _NOT_FOUND:
                self._resolver.forget(key)
            raise

    def _key(self, path: PathLike) -> str:
        return apply_path_prefix(self._prefix, path)

    def _file_key(self, path: PathLike) -> str:
        key = self._key(path)
        if key == self._prefix:
            raise InvalidOperationError.root_path_not_allowed(str(path))
        return key

    def _visible(self, key: str) -> str:
        return remove_path_prefix(self._prefix, key)

    def _file_record(
        self,
        key: str,
        remote: Mapping[str, Any],
        payload: bytes,
    ) -> Metadata:
        name = basename(key)
        return {
            "type": "file",
            "path": self._visible(key),
            "size": int(remote.get("size", len(payload))),
            "mimetype": guess_mimetype(name),
            "contents": payload,
        }

    def _listing_record(self, key: str, item: Mapping[str, Any]) -> Metadata:
        kind = PathKind.from_remote(item.get("type"))
        return {
            "type": "dir" if kind is PathKind.FOLDER else "file",
            "path": self._visible(join_path(key, item["name"])),
            "size": int(item.get("size") or 0),
            "timestamp": timestamp_from_iso(item.get("modified_at")),
        }
