"""Adapter factory for URI-based adapter resolution and instantiation.

This module provides a factory pattern for creating filesystem adapters from
URI strings. It supports the built-in ``box`` scheme and allows registration
of custom adapter factories.

Supported URI Schemes:
    - box://prefix?token=... - BoxAdapter scoped under ``prefix``
    - box:///?token=... - BoxAdapter scoped at the Box root

Recognised query parameters for ``box``: ``token`` (required), ``timeout``,
``max_retries``, ``api_url`` and ``upload_url``.

Example:
    >>> from box_file_backend.factory import resolve_adapter
    >>> adapter = resolve_adapter("box://backups/daily?token=abc&timeout=10")
    >>> adapter.prefix
    '/backups/daily'

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import parse_qs, urlparse

if TYPE_CHECKING:
    from typing import TypeAlias

    from .interfaces import FilesystemAdapter

    AdapterFactoryFunc: TypeAlias = Callable[[str, dict[str, Any]], FilesystemAdapter]

_BOX_OPTIONS = ("token", "timeout", "max_retries", "api_url", "upload_url")


class AdapterFactory:
    """Factory for creating adapters from URI strings."""

    def __init__(self) -> None:
        """Initialize the factory with built-in URI scheme handlers."""
        self._factories: dict[str, Callable[[str, dict[str, Any]], Any]] = {
            "box": self._create_box_adapter,
        }

    def parse_uri(self, uri: str) -> tuple[str, str, dict[str, str]]:
        """Parse a URI into scheme, path, and query parameters.

        Unlike filesystem URIs an empty path is allowed: it scopes the adapter
        to the remote root.

        Raises:
            ValueError: If URI format is invalid

        """
        parsed = urlparse(uri)

        if not parsed.scheme:
            msg = f"Invalid URI: missing scheme in '{uri}'"
            raise ValueError(msg)

        path = f"{parsed.netloc}{parsed.path}".strip("/")

        params: dict[str, str] = {}
        if parsed.query:
            parsed_params = parse_qs(parsed.query)
            # Keep only the first value of repeated parameters
            params = {
                k: v[0] if isinstance(v, list) else v
                for k, v in parsed_params.items()
            }

        return parsed.scheme, path, params

    def resolve(self, uri: str) -> FilesystemAdapter:
        """Create an adapter instance from a URI string.

        Raises:
            ValueError: If URI scheme is unsupported or required options are missing

        """
        scheme, path, params = self.parse_uri(uri)

        if scheme not in self._factories:
            supported = ", ".join(sorted(self._factories.keys()))
            msg = (
                f"Unsupported URI scheme: '{scheme}'. "
                f"Supported schemes: {supported}"
            )
            raise ValueError(msg)

        factory_func = self._factories[scheme]
        return factory_func(path, params)

    def register(
        self,
        scheme: str,
        factory_func: Callable[[str, dict[str, Any]], Any],
    ) -> None:
        """Register a custom adapter factory for a URI scheme.

        Args:
            scheme: URI scheme to register (e.g., "box+dev")
            factory_func: Callable that takes (path, params) and returns an adapter

        """
        if not callable(factory_func):
            msg = "factory_func must be callable"
            raise TypeError(msg)
        self._factories[scheme] = factory_func

    def _create_box_adapter(
        self,
        path: str,
        params: dict[str, Any],
    ) -> FilesystemAdapter:
        """Create a BoxAdapter from URI components.

        URI format: box://prefix/path?token=xxx&timeout=30&max_retries=3

        """
        from .adapter import BoxAdapter

        if "token" not in params:
            msg = "Missing 'token' query parameter in box:// URI"
            raise ValueError(msg)

        connection_info: dict[str, Any] = {"prefix": path}
        for option in _BOX_OPTIONS:
            if option in params:
                connection_info[option] = params[option]

        return BoxAdapter(connection_info)


# Global default factory instance
_default_factory = AdapterFactory()


def resolve_adapter(uri: str) -> FilesystemAdapter:
    """Resolve an adapter from a URI using the default factory.

    Example:
        >>> adapter = resolve_adapter("box://shared/reports?token=abc")

    """
    return _default_factory.resolve(uri)


def register_adapter_factory(
    scheme: str,
    factory_func: Callable[[str, dict[str, Any]], Any],
) -> None:
    """Register a custom adapter factory for a URI scheme.

    Example:
        >>> def sandbox_factory(path: str, params: dict) -> FilesystemAdapter:
        ...     return BoxAdapter({"prefix": path, "api_url": SANDBOX, **params})
        >>> register_adapter_factory("box+sandbox", sandbox_factory)

    """
    _default_factory.register(scheme, factory_func)
