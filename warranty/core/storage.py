"""
Blob storage for uploaded submission files.

Two backends share the ``put`` / ``delete`` interface:

- ``LocalBlobStorage`` writes into a directory served under
  ``BLOB_PUBLIC_BASE_URL`` (development)
- ``HttpBlobStorage`` talks to a Vercel-Blob style HTTP API using the
  read/write token

``put`` raises ``StorageError`` on failure. ``delete`` never raises; failures
are logged and the caller carries on.
"""

import logging
import os
import re
import uuid
from typing import Optional, List

import httpx

from warranty.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def _safe_name(name: str) -> str:
    base = os.path.basename(name or "") or "datei"
    return re.sub(r"[^A-Za-z0-9._-]", "_", base)


class LocalBlobStorage:
    def __init__(self, directory: str, public_base_url: str):
        self.directory = directory
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, name: str, data: bytes, content_type: str) -> str:
        """Store the bytes and return the public URL"""
        key = f"{uuid.uuid4().hex}-{_safe_name(name)}"
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(os.path.join(self.directory, key), "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Could not store {name}: {e}") from e
        return f"{self.public_base_url}/{key}"

    def delete(self, url: str) -> None:
        prefix = f"{self.public_base_url}/"
        if not url.startswith(prefix):
            logger.warning(f"Not a local blob URL, skipping delete: {url}")
            return
        path = os.path.join(self.directory, _safe_name(url[len(prefix):]))
        try:
            os.remove(path)
        except OSError as e:
            logger.error(f"Failed to delete blob {url}: {e}")


class HttpBlobStorage:
    def __init__(self, api_url: str, token: Optional[str], timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict:
        if not self.token:
            raise StorageError("BLOB_READ_WRITE_TOKEN is not configured")
        return {"Authorization": f"Bearer {self.token}"}

    def put(self, name: str, data: bytes, content_type: str) -> str:
        headers = self._headers()
        headers["Content-Type"] = content_type
        headers["x-add-random-suffix"] = "1"
        pathname = f"submissions/{_safe_name(name)}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.put(f"{self.api_url}/{pathname}", headers=headers, content=data)
        except httpx.HTTPError as e:
            raise StorageError(f"Upload of {name} failed: {e}") from e

        if not response.is_success:
            raise StorageError(f"Upload of {name} failed: {response.status_code} - {response.text}")
        url = response.json().get("url")
        if not url:
            raise StorageError(f"Upload of {name} returned no URL")
        return url

    def delete(self, url: str) -> None:
        self.delete_many([url])

    def delete_many(self, urls: List[str]) -> None:
        if not urls:
            return
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.api_url}/delete",
                    headers=self._headers(),
                    json={"urls": urls},
                )
            if not response.is_success:
                logger.error(f"Failed to delete blobs {urls}: {response.status_code} - {response.text}")
        except (httpx.HTTPError, StorageError) as e:
            logger.error(f"Failed to delete blobs {urls}: {e}")


def delete_blobs(storage, urls: List[str]) -> None:
    """Best-effort delete of several blobs"""
    for url in urls:
        try:
            storage.delete(url)
        except Exception as e:
            logger.error(f"Failed to delete blob {url}: {e}")


def create_blob_storage():
    """Build the storage backend selected by BLOB_BACKEND"""
    if settings.BLOB_BACKEND == "vercel":
        return HttpBlobStorage(settings.BLOB_API_URL, settings.BLOB_READ_WRITE_TOKEN)
    return LocalBlobStorage(settings.BLOB_LOCAL_DIR, settings.BLOB_PUBLIC_BASE_URL)


blob_storage = create_blob_storage()
