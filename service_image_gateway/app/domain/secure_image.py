"""
Secure image retrieval: one request from token to image bytes.
"""

from typing import Iterable, Optional

import httpx
from fastapi import Request, Response

from shared.errors import (
    AdmissionDeniedError,
    GatewayError,
    InternalError,
    InvalidTokenError,
    MissingTokenError,
    TokenDecryptionError,
)
from shared.logging import get_logger, request_id_var, set_client_context
from shared.metrics import MetricsCollector
from ..adapters.image_origin_client import FetchedImage, ImageOriginClient
from ..tokens.base import TokenDecryptor
from .client_identity import get_client_id

TOKEN_PARAMETER = "data"

# Applied after the content type so nothing upstream or caller-supplied can replace them.
SECURITY_HEADERS = {
    "Cache-Control": "public, max-age=3600",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'self'",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def build_image_response(image: FetchedImage) -> Response:
    """Wrap fetched bytes with the fixed security header set."""
    headers = {"Content-Type": image.content_type}
    headers.update(SECURITY_HEADERS)
    return Response(content=image.content, status_code=200, headers=headers)


class SecureImageGateway:
    """Orchestrates identify, admit, redeem, fetch, respond and record.

    The rate limit check and the counter increment are separated by the
    upstream fetch and are not atomic together. The counter only moves
    once the image response has been built.
    """

    def __init__(
        self,
        rate_limiter,
        decryptor: TokenDecryptor,
        origin_client: ImageOriginClient,
        metrics: Optional[MetricsCollector] = None,
        trust_proxy_headers: bool = True,
        allowed_hosts: Iterable[str] = (),
    ):
        self.rate_limiter = rate_limiter
        self.decryptor = decryptor
        self.origin_client = origin_client
        self.metrics = metrics
        self.trust_proxy_headers = trust_proxy_headers
        self.allowed_hosts = [host.lower().strip(".") for host in allowed_hosts if host]
        self.logger = get_logger("image_gateway.secure_image")

    async def handle(self, request: Request) -> Response:
        """Serve one secure image request or raise a ``GatewayError``."""
        token = request.query_params.get(TOKEN_PARAMETER)
        if not token:
            self._record_outcome("missing_token")
            raise MissingTokenError()

        client_id = get_client_id(request, self.trust_proxy_headers)
        set_client_context(client_id)

        try:
            if await self.rate_limiter.is_rate_limited(client_id):
                if self.metrics is not None:
                    self.metrics.record_rate_limit_hit()
                raise AdmissionDeniedError()

            image_url = await self._redeem(token)
            image = await self.origin_client.fetch(
                image_url,
                request_id=request_id_var.get(),
                is_allowed=self.is_allowed_target,
            )
            response = build_image_response(image)
            await self.rate_limiter.increment_counter(client_id)

        except GatewayError as exc:
            self._record_outcome(exc.code.lower())
            raise
        except Exception as e:
            self.logger.error(
                "Error processing secure image request",
                error_type=type(e).__name__,
                exc_info=True
            )
            self._record_outcome("internal_error")
            raise InternalError(details={"error_type": type(e).__name__}) from e

        self._record_outcome("delivered")
        self.logger.debug("Secure image delivered", bytes=len(image.content))
        return response

    async def _redeem(self, token: str) -> str:
        """Resolve the token into a fetchable image URL."""
        try:
            image_url = await self.decryptor.decrypt(token)
        except TokenDecryptionError as e:
            self.logger.error("Image token decryptor failed", reason=str(e))
            raise InternalError(details={"reason": "decryptor_unavailable"}) from e

        if not image_url:
            raise InvalidTokenError(details={"reason": "empty"})
        if not self.is_allowed_target(image_url):
            raise InvalidTokenError(details={"reason": "target_rejected"})
        return image_url

    def is_allowed_target(self, image_url: str) -> bool:
        """Accept absolute http(s) URLs, restricted to the allow-list when one is set."""
        try:
            url = httpx.URL(image_url)
        except (httpx.InvalidURL, TypeError):
            return False

        if url.scheme not in ("http", "https") or not url.host:
            return False
        if not self.allowed_hosts:
            return True

        host = url.host.lower()
        return any(host == allowed or host.endswith(f".{allowed}") for allowed in self.allowed_hosts)

    def _record_outcome(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_image_outcome(outcome)
