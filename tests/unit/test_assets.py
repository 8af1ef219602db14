"""
Unit tests for asset publishing.

Tests cover:
- HTTP upload request shape
- Response URL extraction
- Error mapping to AssetUploadError
- In-memory publisher
"""

import httpx
import pytest

from gloss_sdk.assets import (
    BlobPublisher,
    HttpBlobPublisher,
    InMemoryBlobPublisher,
)
from gloss_sdk.errors import AssetUploadError


def make_publisher(handler, storage_url: str = "https://store.example") -> HttpBlobPublisher:
    """Helper to build a publisher over a mock transport."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpBlobPublisher(storage_url=storage_url, client=client)


class TestHttpBlobPublisher:
    """Tests for HttpBlobPublisher.publish."""

    @pytest.mark.asyncio
    async def test_successful_upload(self):
        """The upload posts multipart data and returns the service URL."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"url": "uhrp://abc", "published": True})

        publisher = make_publisher(handler)
        result = await publisher.publish(b"PNGDATA", "image/png", retention_minutes=60)

        assert result.url == "uhrp://abc"
        assert result.published is True
        assert seen["url"] == "https://store.example/upload"
        assert b"PNGDATA" in seen["body"]
        assert b'name="retentionPeriod"' in seen["body"]
        assert b"60" in seen["body"]

    @pytest.mark.asyncio
    async def test_uhrp_url_field(self):
        """The alternative uhrpURL response field is accepted."""
        publisher = make_publisher(lambda request: httpx.Response(200, json={"uhrpURL": "uhrp://x"}))
        assert (await publisher.publish(b"x", "text/plain")).url == "uhrp://x"

    @pytest.mark.asyncio
    async def test_storage_url_override(self):
        """A per-call storage URL replaces the default."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"url": "u"})

        publisher = make_publisher(handler)
        await publisher.publish(b"x", "text/plain", storage_url="https://other.example/")

        assert seen == ["https://other.example/upload"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """Non-2xx responses raise AssetUploadError with the status."""
        publisher = make_publisher(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(AssetUploadError) as exc_info:
            await publisher.publish(b"x", "text/plain")

        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_missing_url(self):
        publisher = make_publisher(lambda request: httpx.Response(200, json={"published": True}))
        with pytest.raises(AssetUploadError):
            await publisher.publish(b"x", "text/plain")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        publisher = make_publisher(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(AssetUploadError):
            await publisher.publish(b"x", "text/plain")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        publisher = make_publisher(handler)
        with pytest.raises(AssetUploadError):
            await publisher.publish(b"x", "text/plain")


class TestInMemoryBlobPublisher:
    """Tests for InMemoryBlobPublisher."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryBlobPublisher(), BlobPublisher)

    @pytest.mark.asyncio
    async def test_publish_is_content_addressed(self):
        publisher = InMemoryBlobPublisher()

        first = await publisher.publish(b"same", "text/plain")
        second = await publisher.publish(b"same", "text/plain", retention_minutes=5)

        assert first.url == second.url
        assert first.url.startswith("mem://")
        assert publisher.blobs[first.url] == (b"same", "text/plain", 5)
