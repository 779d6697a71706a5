"""
Shared error handling for the Rabita image gateway.

Every error that can reach a caller carries a fixed public message and an
HTTP status. ``details`` is for server-side logging only and is never
rendered into a response body.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str


class GatewayError(Exception):
    """Base exception for gateway services."""

    status_code: int = 500
    code: str = "GATEWAY_ERROR"
    public_message: str = "Failed to process secure image request"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.public_message
        self.details = details or {}
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.public_message)


class ClientError(GatewayError):
    """Malformed or missing caller input."""

    status_code = 400
    code = "CLIENT_ERROR"


class MissingTokenError(ClientError):
    """The opaque token parameter was not supplied."""

    code = "MISSING_TOKEN"
    public_message = "Missing encrypted data parameter"


class InvalidTokenError(ClientError):
    """The token did not redeem to a usable image URL."""

    code = "INVALID_TOKEN"
    public_message = "Invalid or expired image data"


class AdmissionDeniedError(GatewayError):
    """Rate limiting errors."""

    status_code = 429
    code = "RATE_LIMIT_ERROR"
    public_message = "Too many requests, please try again later"


class UpstreamError(GatewayError):
    """Image origin fetch failed, returned non-2xx, or timed out."""

    status_code = 502
    code = "UPSTREAM_ERROR"
    public_message = "Failed to retrieve image"


class InternalError(GatewayError):
    """Unexpected failure anywhere in the request pipeline."""

    status_code = 500
    code = "INTERNAL_ERROR"
    public_message = "Failed to process secure image request"


class TokenDecryptionError(Exception):
    """Raised by a token decryptor that cannot operate (as opposed to a bad token)."""
