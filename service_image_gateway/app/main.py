"""
Secure image gateway service for Rabita.
"""

from typing import Dict, Optional

import httpx
from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from .adapters.image_origin_client import ImageOriginClient
from .domain.secure_image import SecureImageGateway
from .ratelimit import RateLimiter, RedisFixedWindowRateLimiter, build_rate_limiter
from .tokens import TokenDecryptor, build_token_decryptor


class ImageGatewayService(BaseService):
    """Secure image gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        decryptor: Optional[TokenDecryptor] = None,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("image_gateway", 8000, config=config)

        self.rate_limiter = rate_limiter or build_rate_limiter(self.config)
        self.decryptor = decryptor or build_token_decryptor(self.config)
        self.origin_client = ImageOriginClient(
            timeout=self.config.upstream_timeout_seconds,
            user_agent=self.config.upstream_user_agent,
            metrics=self.metrics,
            transport=upstream_transport,
        )
        self.gateway = SecureImageGateway(
            self.rate_limiter,
            self.decryptor,
            self.origin_client,
            metrics=self.metrics,
            trust_proxy_headers=self.config.trust_proxy_headers,
            allowed_hosts=self.config.allowed_image_hosts,
        )

        @self.app.on_event("startup")
        async def _startup():
            self.rate_limiter.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.rate_limiter.stop()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.image_gateway_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the rate limit store status."""
        if isinstance(self.rate_limiter, RedisFixedWindowRateLimiter):
            return {"redis": "ok" if await self.rate_limiter.ping() else "error"}
        return {}

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "image_gateway",
                "message": "Rabita - Secure Image Gateway",
                "version": "1.0.0"
            }

        @self.app.get("/api/secure-image")
        async def secure_image(request: Request):
            """Redeem an opaque image token and return the image bytes."""
            return await self.gateway.handle(request)

        @self.app.get("/api/v1/rate-limit/status")
        async def rate_limit_status():
            """Aggregate rate limiter statistics."""
            return await self.rate_limiter.stats()


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = ImageGatewayService(config=config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = ImageGatewayService()
    service.run()
