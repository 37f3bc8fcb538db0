"""Thin client for the Box content API used by the adapter."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .interfaces import FileBackendError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.box.com/2.0"
DEFAULT_UPLOAD_URL = "https://upload.box.com/api/2.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
# Box caps offset-based folder listings at 1000 entries per page.
LIST_PAGE_SIZE = 1000
LIST_FIELDS = "id,name,type,size,modified_at"

_RETRY_STATUSES = (429, 500, 502, 503, 504)


class RemoteCallError(FileBackendError):
    """Error raised when a Box API call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: requests.Response | None = None,
    ) -> None:
        """Initialise the error with the HTTP status that caused it."""
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    @classmethod
    def from_response(
        cls,
        method: str,
        url: str,
        response: requests.Response,
    ) -> RemoteCallError:
        """Return an error describing an unsuccessful HTTP response."""
        return cls(
            f"{method} {url} failed with HTTP {response.status_code}",
            status_code=response.status_code,
            response=response,
        )

    @classmethod
    def transport_failed(cls, method: str, url: str) -> RemoteCallError:
        """Return an error for connection failures and timeouts."""
        return cls(f"{method} {url} could not be completed")

    @classmethod
    def missing_redirect(cls, file_id: str) -> RemoteCallError:
        """Return an error when a download does not redirect to the content."""
        return cls(f"Download of file {file_id} returned no content location")

    @classmethod
    def unexpected_payload(cls, what: str) -> RemoteCallError:
        """Return an error when a response lacks an expected field."""
        return cls(f"Unexpected response payload: missing {what}")


class ResponseParseError(RemoteCallError):
    """Raised when a response body cannot be decoded as JSON."""

    @classmethod
    def from_response(
        cls,
        method: str,
        url: str,
        response: requests.Response,
    ) -> ResponseParseError:
        """Return an error describing an undecodable response body."""
        return cls(
            f"{method} {url} returned a body that is not JSON "
            f"(HTTP {response.status_code})",
            status_code=response.status_code,
            response=response,
        )

    def is_no_content(self) -> bool:
        """Return True when the failure is an empty ``204 No Content`` success."""
        return self.status_code == requests.codes.no_content


class FolderAlreadyExists(RemoteCallError):
    """Raised when Box refuses to create a folder because the name is taken."""

    def __init__(
        self,
        message: str,
        *,
        existing_id: str | None = None,
        existing_type: str | None = None,
        status_code: int | None = None,
        response: requests.Response | None = None,
    ) -> None:
        """Initialise the conflict with the id of the folder already there."""
        super().__init__(message, status_code=status_code, response=response)
        self.existing_id = existing_id
        self.existing_type = existing_type


def build_session(max_retries: int = DEFAULT_MAX_RETRIES) -> requests.Session:
    """Return a keep-alive session retrying idempotent requests with backoff.

    Only GET and HEAD are retried; uploads, deletes and updates are sent once.
    """
    session = requests.Session()
    retry = Retry(
        total=max_retries,
        backoff_factor=0.5,
        status_forcelist=_RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class BoxApiClient:
    """Authenticated calls against the Box REST API.

    Every method maps onto exactly one endpoint (listing may page). Failures
    raise :class:`RemoteCallError` or one of its subclasses.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        upload_url: str = DEFAULT_UPLOAD_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the client with a bearer access token."""
        if not token:
            message = "A Box access token is required"
            raise ValueError(message)
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else build_session(max_retries)

    # -- folders -------------------------------------------------------

    def list_folder_items(self, folder_id: str) -> list[dict[str, Any]]:
        """Return every child of a folder, following offset pagination."""
        url = f"{self._api_url}/folders/{folder_id}/items"
        entries: list[dict[str, Any]] = []
        offset = 0
        while True:
            payload = self._call(
                "GET",
                url,
                params={"fields": LIST_FIELDS, "limit": LIST_PAGE_SIZE, "offset": offset},
            )
            page = payload.get("entries")
            if page is None:
                raise RemoteCallError.unexpected_payload("entries")
            entries.extend(page)
            offset += len(page)
            total = int(payload.get("total_count", offset))
            if not page or offset >= total:
                break
        logger.debug("Listed %d item(s) in folder %s", len(entries), folder_id)
        return entries

    def get_folder_info(self, folder_id: str) -> dict[str, Any]:
        """Return the Box folder object for ``folder_id``."""
        return self._call("GET", f"{self._api_url}/folders/{folder_id}")

    def create_folder(self, name: str, parent_id: str) -> dict[str, Any]:
        """Create a folder named ``name`` under ``parent_id``.

        Raises:
            FolderAlreadyExists: If an item with that name is already present.

        """
        url = f"{self._api_url}/folders"
        try:
            return self._call(
                "POST",
                url,
                json={"name": name, "parent": {"id": str(parent_id)}},
            )
        except RemoteCallError as exc:
            if exc.status_code != requests.codes.conflict:
                raise
            existing_id, existing_type = _conflicting_item(exc.response)
            raise FolderAlreadyExists(
                f"Folder {name!r} already exists in folder {parent_id}",
                existing_id=existing_id,
                existing_type=existing_type,
                status_code=exc.status_code,
                response=exc.response,
            ) from exc

    def delete_folder(self, folder_id: str, *, recursive: bool = True) -> bool:
        """Delete a folder; Box answers ``204 No Content`` on success."""
        params = {"recursive": "true" if recursive else "false"}
        return self._delete(f"{self._api_url}/folders/{folder_id}", params=params)

    # -- files ---------------------------------------------------------

    def get_file_info(self, file_id: str) -> dict[str, Any]:
        """Return the Box file object for ``file_id``."""
        return self._call("GET", f"{self._api_url}/files/{file_id}")

    def upload_file(self, name: str, parent_id: str, data: bytes) -> dict[str, Any]:
        """Upload a new file and return the created file object."""
        attributes = json.dumps({"name": name, "parent": {"id": str(parent_id)}})
        payload = self._call(
            "POST",
            f"{self._upload_url}/files/content",
            files={"attributes": (None, attributes), "file": (name, data)},
        )
        return _first_entry(payload)

    def upload_file_version(self, file_id: str, data: bytes) -> dict[str, Any]:
        """Upload a new version of an existing file."""
        payload = self._call(
            "POST",
            f"{self._upload_url}/files/{file_id}/content",
            files={"file": ("contents", data)},
        )
        return _first_entry(payload)

    def update_file_info(
        self,
        file_id: str,
        *,
        name: str | None = None,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        """Rename and/or move a file."""
        body: dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if parent_id is not None:
            body["parent"] = {"id": str(parent_id)}
        return self._call("PUT", f"{self._api_url}/files/{file_id}", json=body)

    def copy_file(
        self,
        file_id: str,
        dest_folder_id: str,
        *,
        name: str | None = None,
    ) -> dict[str, Any]:
        """Copy a file into ``dest_folder_id``, optionally under a new name."""
        body: dict[str, Any] = {"parent": {"id": str(dest_folder_id)}}
        if name is not None:
            body["name"] = name
        return self._call("POST", f"{self._api_url}/files/{file_id}/copy", json=body)

    def delete_file(self, file_id: str) -> bool:
        """Delete a file; Box answers ``204 No Content`` on success."""
        return self._delete(f"{self._api_url}/files/{file_id}")

    def download_file(self, file_id: str) -> str:
        """Return the location Box redirects a content download to."""
        response = self._request(
            "GET",
            f"{self._api_url}/files/{file_id}/content",
            allow_redirects=False,
        )
        location = response.headers.get("Location")
        if not location:
            raise RemoteCallError.missing_redirect(file_id)
        return location

    def fetch(self, location: str) -> bytes:
        """Fetch raw bytes from a download location without credentials."""
        return self._request("GET", location, authenticated=False).content

    # -- transport -----------------------------------------------------

    def _delete(self, url: str, **kwargs: Any) -> bool:
        try:
            self._call("DELETE", url, **kwargs)
        except ResponseParseError as exc:
            # The empty body of a 204 cannot be decoded, but the delete worked.
            if exc.is_no_content():
                return True
            raise
        return True

    def _call(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Perform a request and decode its JSON body."""
        response = self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseParseError.from_response(method, url, response) from exc

    def _request(
        self,
        method: str,
        url: str,
        *,
        authenticated: bool = True,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        request_headers = dict(headers or {})
        if authenticated:
            request_headers["Authorization"] = f"Bearer {self._token}"
        kwargs.setdefault("timeout", self._timeout)
        try:
            response = self._session.request(
                method,
                url,
                headers=request_headers,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise RemoteCallError.transport_failed(method, url) from exc
        logger.debug("%s %s -> HTTP %s", method, url, response.status_code)
        if response.status_code >= requests.codes.bad_request:
            raise RemoteCallError.from_response(method, url, response)
        return response


def _first_entry(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return the single file object wrapped in an upload response."""
    entries = payload.get("entries") or []
    if not entries:
        raise RemoteCallError.unexpected_payload("entries")
    return entries[0]


def _conflicting_item(
    response: requests.Response | None,
) -> tuple[str | None, str | None]:
    """Extract the id and type of the conflicting item from a 409 response."""
    if response is None:
        return None, None
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    conflicts = (body.get("context_info") or {}).get("conflicts")
    if isinstance(conflicts, list):
        conflicts = conflicts[0] if conflicts else None
    if not isinstance(conflicts, dict) or conflicts.get("id") is None:
        return None, None
    return str(conflicts["id"]), conflicts.get("type")
