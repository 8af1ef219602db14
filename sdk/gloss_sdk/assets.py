"""
Binary asset publishing for the Gloss SDK.

Log entries may reference attached files (screenshots, traces) by URL.
The SDK uploads the bytes through a BlobPublisher and stores only the
returned URL in the entry's ``assets`` list.

Upload protocol used by HttpBlobPublisher:
    POST {storage_url}/upload
        multipart form: file=<bytes>, retentionPeriod=<minutes>
    200 {"url": "...", "published": true}

Invariants:
    - Retention is expressed in minutes (default 30 days)
    - A non-2xx response or a body without a URL is an AssetUploadError
"""

from __future__ import annotations

import hashlib
import logging
from abc import abstractmethod
from typing import Dict, Optional, Protocol, runtime_checkable

import httpx

from .errors import AssetUploadError
from .types import UploadResult

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_URL = "https://nanostore.babbage.systems"
DEFAULT_RETENTION_MINUTES = 60 * 24 * 30


@runtime_checkable
class BlobPublisher(Protocol):
    """Publishes bytes and returns a URL for them."""

    @abstractmethod
    async def publish(
        self,
        data: bytes,
        mime_type: str,
        retention_minutes: int = DEFAULT_RETENTION_MINUTES,
        storage_url: Optional[str] = None,
    ) -> UploadResult:
        """Upload bytes.

        Raises:
            AssetUploadError: If the upload fails
        """
        ...


class HttpBlobPublisher:
    """BlobPublisher backed by an HTTP storage service.

    Example:
        >>> async with HttpBlobPublisher() as publisher:
        ...     result = await publisher.publish(png_bytes, "image/png")
        ...     result.url
    """

    def __init__(
        self,
        storage_url: str = DEFAULT_STORAGE_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the publisher.

        Args:
            storage_url: Default storage service base URL
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (owned by caller)
        """
        self.storage_url = storage_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpBlobPublisher:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def publish(
        self,
        data: bytes,
        mime_type: str,
        retention_minutes: int = DEFAULT_RETENTION_MINUTES,
        storage_url: Optional[str] = None,
    ) -> UploadResult:
        base = (storage_url or self.storage_url).rstrip("/")
        try:
            response = await self._client.post(
                f"{base}/upload",
                files={"file": ("asset", data, mime_type)},
                data={"retentionPeriod": str(retention_minutes)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise AssetUploadError(
                f"Storage service rejected upload: {e.response.status_code}",
                storage_url=base,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise AssetUploadError(f"Upload failed: {e}", storage_url=base) from e

        if not isinstance(body, dict):
            raise AssetUploadError("Storage service returned a non-object body", storage_url=base)
        url = body.get("url") or body.get("uhrpURL")
        if not url:
            raise AssetUploadError("Storage service returned no URL", storage_url=base)

        logger.info(
            "Asset published",
            extra={"storage_url": base, "size": len(data), "mime_type": mime_type},
        )
        return UploadResult(url=str(url), published=bool(body.get("published", True)))


class InMemoryBlobPublisher:
    """BlobPublisher keeping uploads in memory (testing helper)."""

    def __init__(self, scheme: str = "mem") -> None:
        self.scheme = scheme
        self.blobs: Dict[str, tuple[bytes, str, int]] = {}

    async def publish(
        self,
        data: bytes,
        mime_type: str,
        retention_minutes: int = DEFAULT_RETENTION_MINUTES,
        storage_url: Optional[str] = None,
    ) -> UploadResult:
        url = f"{self.scheme}://{hashlib.sha256(data).hexdigest()}"
        self.blobs[url] = (data, mime_type, retention_minutes)
        return UploadResult(url=url, published=True)
