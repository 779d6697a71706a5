"""
Adapters package for the image gateway.

Contains HTTP client wrappers for the gateway's outbound calls. Adapters
encapsulate request shapes, timeouts and the mapping of transport
failures onto shared errors.
"""

from .image_origin_client import DEFAULT_IMAGE_CONTENT_TYPE, FetchedImage, ImageOriginClient

__all__ = [
    "DEFAULT_IMAGE_CONTENT_TYPE",
    "FetchedImage",
    "ImageOriginClient",
]
