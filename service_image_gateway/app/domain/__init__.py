"""
Domain layer for the image gateway: client identity and the secure image
request pipeline.
"""

from .client_identity import UNKNOWN_CLIENT, get_client_id
from .secure_image import SECURITY_HEADERS, SecureImageGateway, build_image_response

__all__ = [
    "UNKNOWN_CLIENT",
    "get_client_id",
    "SECURITY_HEADERS",
    "SecureImageGateway",
    "build_image_response",
]
