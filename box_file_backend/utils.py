"""Shared helpers for turning caller input and Box payloads into plain values.

Key utilities:
- Data type coercion (bytes, str, BinaryIO)
- ISO-8601 timestamp parsing
- Mimetype guessing from file names

Example usage:
    >>> from box_file_backend.utils import coerce_to_bytes
    >>> coerce_to_bytes("Hello, world!")
    b'Hello, world!'
"""

from __future__ import annotations

import io
import mimetypes
from datetime import datetime, timezone
from typing import Any, BinaryIO

DEFAULT_MIMETYPE = "application/octet-stream"


def coerce_to_bytes(data: bytes | str | BinaryIO) -> bytes:
    """Coerce supported input types to raw bytes.

    Handles bytes, strings (UTF-8 encoded), and file-like objects.

    Raises:
        TypeError: If data type is not supported.

    """
    if isinstance(data, bytes):
        return data
    if isinstance(data, bytearray):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")

    if hasattr(data, "read"):
        result = data.read()

        if hasattr(data, "seek"):
            try:
                data.seek(0)
            except (OSError, io.UnsupportedOperation):
                pass

        if isinstance(result, str):
            return result.encode("utf-8")
        if isinstance(result, (bytes, bytearray)):
            return bytes(result)
        message = f"Unsupported stream payload type: {type(result).__name__}"
        raise TypeError(message)

    message = f"Unsupported data type: {type(data).__name__}"
    raise TypeError(message)


def timestamp_from_iso(value: Any) -> int | None:
    """Convert a Box ``modified_at`` value to integer Unix seconds.

    Example:

        >>> timestamp_from_iso("2012-12-12T10:53:43-08:00")
        1355338423

    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def guess_mimetype(name: str) -> str:
    """Return the mimetype implied by a file name, defaulting to binary."""
    mimetype, _ = mimetypes.guess_type(name)
    return mimetype or DEFAULT_MIMETYPE
