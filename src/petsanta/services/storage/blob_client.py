"""Blob storage client for uploaded pet photos and generated images."""

import re
import uuid
from pathlib import PurePosixPath

import httpx

from petsanta.services.exceptions import StorageError


def generated_image_path(user_id: str, provider_task_id: str, output_format: str = "png") -> str:
    """Storage pathname for a generated artifact (keyed by user and provider task)."""
    return f"pets-santa/generated/{user_id}/{provider_task_id}.{output_format}"


def original_image_path(user_id: str, filename: str) -> str:
    """Storage pathname for an uploaded source photo.

    The client filename is reduced to a safe basename and prefixed with a random
    suffix so repeated uploads never overwrite each other.
    """
    name = re.sub(r"[^A-Za-z0-9._-]", "_", PurePosixPath(filename or "").name) or "photo"
    return f"pets-santa/originals/{user_id}/{uuid.uuid4().hex[:12]}-{name}"


class BlobStorageClient:
    """Artifact store backed by the Vercel Blob HTTP API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://blob.vercel-storage.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize blob storage client.

        Args:
            token: Read/write token (from BLOB_READ_WRITE_TOKEN env var)
            api_url: Blob API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def download(self, url: str) -> bytes:
        """Download image bytes from a provider result URL.

        Raises:
            StorageError: Timeout, network error, or non-2xx response
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise StorageError(f"Download timeout after {self.timeout}s: {str(e)}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Download failed: {str(e)}") from e

    async def put(self, pathname: str, data: bytes, content_type: str = "image/png") -> str:
        """Store bytes publicly under pathname.

        Args:
            pathname: Object path (e.g. pets-santa/generated/<user>/<task>.png)
            data: Object content
            content_type: MIME type served with the object

        Returns:
            Public URL of the stored object

        Raises:
            StorageError: Missing token, timeout, network error, or non-2xx response
        """
        if not self.token:
            raise StorageError("BLOB_READ_WRITE_TOKEN is not set")

        headers = {
            "Authorization": f"Bearer {self.token}",
            "x-api-version": "7",
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.put(
                    f"{self.api_url}/{pathname}",
                    headers=headers,
                    params={"access": "public"},
                    content=data,
                )
                response.raise_for_status()
                result = response.json()
        except httpx.TimeoutException as e:
            raise StorageError(f"Upload timeout after {self.timeout}s: {str(e)}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed: {str(e)}") from e
        except ValueError as e:
            raise StorageError(f"Invalid response from blob store: {str(e)}") from e

        url = result.get("url")
        if not url:
            raise StorageError("Blob store response did not include a url")
        return url
