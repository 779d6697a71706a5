"""
Unit tests for the image origin client.
"""

import httpx
import pytest

from service_image_gateway.app.adapters.image_origin_client import ImageOriginClient
from shared.errors import UpstreamError
from shared.metrics import MetricsCollector
from shared.test_helpers import PNG_BYTES, UpstreamRecorder

IMAGE_URL = "https://images.example.com/avatar.png"


class TestImageOriginClient:
    """Test cases for ImageOriginClient."""

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        """Bytes and content type come back untouched."""
        upstream = UpstreamRecorder()
        client = ImageOriginClient(transport=upstream.transport())

        image = await client.fetch(IMAGE_URL, request_id="req-1")

        assert image.content == PNG_BYTES
        assert image.content_type == "image/png"
        sent = upstream.requests[0]
        assert sent.method == "GET"
        assert str(sent.url) == IMAGE_URL
        assert sent.headers["User-Agent"] == "Rabita-Image-Proxy/1.0"
        assert sent.headers["X-Request-ID"] == "req-1"

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults_to_jpeg(self):
        upstream = UpstreamRecorder(headers={})
        client = ImageOriginClient(transport=upstream.transport())

        image = await client.fetch(IMAGE_URL)

        assert image.content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_not_found_raises_upstream_error(self):
        upstream = UpstreamRecorder(status_code=404, content=b"not found", headers={"content-type": "text/plain"})
        client = ImageOriginClient(transport=upstream.transport())

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch(IMAGE_URL)

        assert exc_info.value.details["status_code"] == 404

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self):
        upstream = UpstreamRecorder(status_code=503)
        client = ImageOriginClient(transport=upstream.transport())

        with pytest.raises(UpstreamError):
            await client.fetch(IMAGE_URL)

        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_error(self):
        upstream = UpstreamRecorder(error=lambda request: httpx.ReadTimeout("timed out", request=request))
        client = ImageOriginClient(timeout=0.5, transport=upstream.transport())

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch(IMAGE_URL)

        assert exc_info.value.details["reason"] == "timeout"

    @pytest.mark.asyncio
    async def test_connection_error_raises_upstream_error(self):
        upstream = UpstreamRecorder(error=lambda request: httpx.ConnectError("refused", request=request))
        client = ImageOriginClient(transport=upstream.transport())

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch(IMAGE_URL)

        assert exc_info.value.details["reason"] == "transport"
        assert IMAGE_URL not in str(exc_info.value.details)

    @pytest.mark.asyncio
    async def test_fetch_duration_recorded(self):
        metrics = MetricsCollector("image_gateway")
        client = ImageOriginClient(metrics=metrics, transport=UpstreamRecorder().transport())

        await client.fetch(IMAGE_URL)

        assert b'upstream_fetch_duration_seconds_count{status="200"} 1.0' in metrics.render()

    @pytest.mark.asyncio
    async def test_redirect_to_rejected_target_is_not_followed(self):
        """Every hop is checked, not just the first URL."""
        upstream = UpstreamRecorder(redirects={IMAGE_URL: "http://169.254.169.254/latest/meta-data"})
        client = ImageOriginClient(transport=upstream.transport())

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch(IMAGE_URL, is_allowed=lambda url: "images.example.com" in url)

        assert exc_info.value.details["reason"] == "target_rejected"
        assert [str(r.url) for r in upstream.requests] == [IMAGE_URL]

    @pytest.mark.asyncio
    async def test_redirect_to_allowed_target_is_followed(self):
        moved = "https://images.example.com/moved.png"
        upstream = UpstreamRecorder(redirects={IMAGE_URL: moved})
        client = ImageOriginClient(transport=upstream.transport())

        image = await client.fetch(IMAGE_URL, is_allowed=lambda url: "images.example.com" in url)

        assert image.content == PNG_BYTES
        assert [str(r.url) for r in upstream.requests] == [IMAGE_URL, moved]

    @pytest.mark.asyncio
    async def test_trickling_body_hits_overall_deadline(self):
        """Each chunk arrives well inside the timeout but the whole body does not."""
        upstream = UpstreamRecorder(chunk_delay=0.05)
        metrics = MetricsCollector("image_gateway")
        client = ImageOriginClient(timeout=0.2, metrics=metrics, transport=upstream.transport())

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch(IMAGE_URL)

        assert exc_info.value.details["reason"] == "timeout"
        assert b'upstream_fetch_duration_seconds_count{status="timeout"} 1.0' in metrics.render()
