"""
Image origin client for the image gateway.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional
import time

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

DEFAULT_IMAGE_CONTENT_TYPE = "image/jpeg"


@dataclass
class FetchedImage:
    """Raw image bytes plus the origin's declared content type."""

    content: bytes
    content_type: str


class ImageOriginClient:
    """Fetches images from arbitrary HTTP(S) origins.

    Each fetch is a single GET, redirects included, that must finish within
    ``timeout`` seconds end to end. Failures are never retried; every
    transport error, timeout, rejected redirect target and non-2xx status
    is raised as ``UpstreamError``. The URL is kept out of logs and error
    details.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "Rabita-Image-Proxy/1.0",
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.metrics = metrics
        self._transport = transport
        self.logger = get_logger("image_gateway.origin_client")

    async def fetch(
        self,
        url: str,
        request_id: Optional[str] = None,
        is_allowed: Optional[Callable[[str], bool]] = None,
    ) -> FetchedImage:
        """GET the image at ``url``.

        ``is_allowed`` is consulted for every hop, so a redirect cannot lead
        the fetch somewhere the first URL would not have been allowed to go.
        """
        headers = {"User-Agent": self.user_agent}
        if request_id:
            headers["X-Request-ID"] = request_id

        event_hooks = {}
        if is_allowed is not None:
            async def check_target(request: httpx.Request) -> None:
                if not is_allowed(str(request.url)):
                    self.logger.warning("Image origin target rejected")
                    raise UpstreamError(details={"reason": "target_rejected"})

            event_hooks["request"] = [check_target]

        start_time = time.time()
        status = "error"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
                event_hooks=event_hooks,
            ) as client:
                # Per-operation timeouts reset on every chunk; this caps the whole exchange.
                response = await asyncio.wait_for(client.get(url, headers=headers), timeout=self.timeout)
            status = str(response.status_code)
        except UpstreamError:
            status = "rejected"
            raise
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            status = "timeout"
            self.logger.error("Image origin timed out", timeout_seconds=self.timeout)
            raise UpstreamError(details={"reason": "timeout"}) from e
        except httpx.HTTPError as e:
            self.logger.error("Image origin transport error", error_type=type(e).__name__)
            raise UpstreamError(details={"reason": "transport", "error_type": type(e).__name__}) from e
        finally:
            if self.metrics is not None:
                self.metrics.observe_histogram(
                    "upstream_fetch_duration_seconds",
                    time.time() - start_time,
                    status=status,
                )

        if not response.is_success:
            self.logger.error("Image origin returned an error status", status_code=response.status_code)
            raise UpstreamError(details={"reason": "status", "status_code": response.status_code})

        content_type = response.headers.get("content-type") or DEFAULT_IMAGE_CONTENT_TYPE
        return FetchedImage(content=response.content, content_type=content_type)
