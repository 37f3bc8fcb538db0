"""Translation of adapter exceptions into the boolean result contract.

The generic filesystem layer expects every operation to return ``False`` on
failure instead of raising. Internally the adapter raises typed
:class:`~box_file_backend.interfaces.FileBackendError` subclasses; the
helpers here log that cause and collapse it to ``False`` at the public
boundary.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Literal, TypeVar

from .client import RemoteCallError
from .interfaces import FileBackendError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def log_backend_exception(operation: str, exc: FileBackendError) -> None:
    """Record why an operation failed at the level its cause deserves.

    Missing paths are routine and logged at DEBUG; remote failures and other
    errors are logged at WARNING with the HTTP status when one is known.
    """
    if isinstance(exc, NotFoundError):
        logger.debug("%s: %s", operation, exc)
        return
    if isinstance(exc, RemoteCallError) and exc.status_code is not None:
        logger.warning("%s failed (HTTP %s): %s", operation, exc.status_code, exc)
        return
    logger.warning("%s failed: %s", operation, exc)


def false_on_error(
    method: Callable[..., T],
) -> Callable[..., T | Literal[False]]:
    """Decorator returning ``False`` when a method raises an adapter error.

    Exceptions that are not :class:`FileBackendError` (programming errors such
    as ``TypeError``) propagate unchanged.

    Example:
        ```python
        @false_on_error
        def delete(self, path):
            ...
        ```

    """

    @functools.wraps(method)
    def wrapper(*args: object, **kwargs: object) -> T | Literal[False]:
        try:
            return method(*args, **kwargs)
        except FileBackendError as exc:
            log_backend_exception(method.__name__, exc)
            return False

    return wrapper
