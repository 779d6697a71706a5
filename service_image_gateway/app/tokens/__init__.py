"""
Image token redemption for the gateway.

The gateway never builds tokens; it only redeems them through a
``TokenDecryptor``. Two schemes are available, selected by
``token_scheme``: signed JWTs and sealed (encrypted) tokens.
"""

from shared.config import ServiceConfig

from .base import TokenDecryptor
from .sealed import SealedTokenDecryptor
from .signed import SignedTokenDecryptor


def build_token_decryptor(config: ServiceConfig) -> TokenDecryptor:
    """Create the decryptor selected by ``token_scheme``."""
    if config.token_scheme == "sealed":
        return SealedTokenDecryptor(config.token_private_key)
    return SignedTokenDecryptor(config.token_secret, audience=config.token_audience)


__all__ = [
    "TokenDecryptor",
    "SealedTokenDecryptor",
    "SignedTokenDecryptor",
    "build_token_decryptor",
]
