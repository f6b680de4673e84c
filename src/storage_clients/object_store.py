"""Object stores holding the blob-index backend's page documents.

Two implementations of the ObjectStore interface:

    - LocalObjectStore: one file per blob in a directory
    - HttpObjectStore: bucket/file REST endpoint reached with requests
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.exceptions import ConnectionError, Timeout

from .errors import ObjectStoreError
from .retry_logic import retry_on_rate_limit

logger = logging.getLogger(__name__)

# HTTP request timeout in seconds
HTTP_TIMEOUT = 30

_BLOB_ID = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$')


def validate_blob_id(blob_id: str) -> None:
    """Reject blob ids that could escape the bucket/directory.

    Raises:
        ValueError: If blob_id contains anything but [A-Za-z0-9_.-]
    """
    if not blob_id or not _BLOB_ID.match(blob_id) or ".." in blob_id:
        raise ValueError(f"Invalid blob id: '{blob_id}'")


class ObjectStore(ABC):
    """Blob storage addressed by caller-chosen ids."""

    @abstractmethod
    def upload(self, data: bytes, blob_id: str) -> str:
        """Store ``data`` under ``blob_id``; returns the blob id."""

    @abstractmethod
    def download(self, blob_id: str) -> bytes:
        """Fetch a blob.

        Raises:
            ObjectStoreError: With ``not_found=True`` when the blob is missing
        """

    @abstractmethod
    def delete(self, blob_id: str) -> None:
        """Delete a blob; deleting a missing blob is not an error."""

    def close(self) -> None:
        """Release client resources."""


class LocalObjectStore(ObjectStore):
    """Object store backed by a local directory.

    Example:
        >>> store = LocalObjectStore("./wiki-blobs")
        >>> store.upload(b"hello", "abc123")
        'abc123'
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        os.makedirs(self.path, exist_ok=True)

    def _blob_path(self, blob_id: str) -> str:
        validate_blob_id(blob_id)
        return os.path.join(self.path, blob_id)

    def upload(self, data: bytes, blob_id: str) -> str:
        blob_path = self._blob_path(blob_id)
        try:
            with open(blob_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ObjectStoreError(blob_id, "upload", str(e)) from e
        logger.debug(f"Stored blob {blob_id} ({len(data)} bytes)")
        return blob_id

    def download(self, blob_id: str) -> bytes:
        blob_path = self._blob_path(blob_id)
        try:
            with open(blob_path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise ObjectStoreError(blob_id, "download", "blob does not exist", not_found=True) from e
        except OSError as e:
            raise ObjectStoreError(blob_id, "download", str(e)) from e

    def delete(self, blob_id: str) -> None:
        blob_path = self._blob_path(blob_id)
        try:
            os.remove(blob_path)
        except FileNotFoundError:
            logger.debug(f"Blob {blob_id} already absent")
        except OSError as e:
            raise ObjectStoreError(blob_id, "delete", str(e)) from e


class HttpObjectStore(ObjectStore):
    """Object store reached over a bucket/file REST API.

    Endpoints:
        POST   {endpoint}/buckets/{bucket}/files        (multipart, fileId + file)
        GET    {endpoint}/buckets/{bucket}/files/{id}/download
        DELETE {endpoint}/buckets/{bucket}/files/{id}

    Rate limited calls (429) are retried with exponential backoff.
    """

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        api_key: str,
        project: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.bucket = bucket
        self._session = session or requests.Session()
        self._session.headers.update({"X-API-Key": api_key})
        if project:
            self._session.headers.update({"X-Project": project})

    def _files_url(self, blob_id: Optional[str] = None) -> str:
        url = f"{self.endpoint}/buckets/{self.bucket}/files"
        if blob_id is not None:
            url += f"/{blob_id}"
        return url

    def _request(self, method: str, url: str, blob_id: str, operation: str, **kwargs) -> requests.Response:
        def _send() -> requests.Response:
            response = self._session.request(method, url, timeout=HTTP_TIMEOUT, **kwargs)
            if response.status_code == 429:
                response.raise_for_status()
            return response

        try:
            return retry_on_rate_limit(_send, service="Object store")
        except (Timeout, ConnectionError) as e:
            raise ObjectStoreError(blob_id, operation, f"endpoint unreachable: {self.endpoint}") from e
        except requests.RequestException as e:
            raise ObjectStoreError(blob_id, operation, sanitize_credentials(str(e))) from e

    def upload(self, data: bytes, blob_id: str) -> str:
        validate_blob_id(blob_id)
        response = self._request(
            "POST",
            self._files_url(),
            blob_id,
            "upload",
            data={"fileId": blob_id},
            files={"file": (f"{blob_id}.md", data, "text/markdown")},
        )
        if response.status_code not in (200, 201):
            raise ObjectStoreError(blob_id, "upload", f"HTTP {response.status_code}")
        logger.debug(f"Uploaded blob {blob_id} to bucket {self.bucket}")
        return blob_id

    def download(self, blob_id: str) -> bytes:
        validate_blob_id(blob_id)
        response = self._request("GET", f"{self._files_url(blob_id)}/download", blob_id, "download")
        if response.status_code == 404:
            raise ObjectStoreError(blob_id, "download", "blob does not exist", not_found=True)
        if response.status_code != 200:
            raise ObjectStoreError(blob_id, "download", f"HTTP {response.status_code}")
        return response.content

    def delete(self, blob_id: str) -> None:
        validate_blob_id(blob_id)
        response = self._request("DELETE", self._files_url(blob_id), blob_id, "delete")
        if response.status_code == 404:
            logger.debug(f"Blob {blob_id} already absent from bucket {self.bucket}")
            return
        if response.status_code not in (200, 202, 204):
            raise ObjectStoreError(blob_id, "delete", f"HTTP {response.status_code}")

    def close(self) -> None:
        self._session.close()


def sanitize_credentials(text: str) -> str:
    """Mask credentials in error messages before they are logged.

    Example:
        >>> sanitize_credentials("X-API-Key: abc123 rejected")
        'X-API-Key: ***REDACTED*** rejected'
    """
    if not text:
        return text

    sanitized = re.sub(r'://([\w.-]+):([\w.-]+)@', r'://***:***@', text)
    sanitized = re.sub(
        r'(Authorization|X-API-Key):\s*(?:(?:Bearer|token)\s+)?[^\s]+',
        r'\1: ***REDACTED***',
        sanitized,
        flags=re.IGNORECASE,
    )
    sanitized = re.sub(r'Bearer\s+[^\s]+', 'Bearer ***REDACTED***', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(
        r'(api_?key|token)=([^\s&]+)',
        r'\1=***REDACTED***',
        sanitized,
        flags=re.IGNORECASE,
    )
    return sanitized
