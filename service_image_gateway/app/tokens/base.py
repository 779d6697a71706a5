"""
Token redemption interface.
"""

from typing import Optional, Protocol


class TokenDecryptor(Protocol):
    """Turns an opaque image token into the upstream image URL.

    Returns ``None`` (or an empty string) for tokens that are malformed,
    tampered with or expired. Raises ``TokenDecryptionError`` when the
    decryptor itself cannot operate, e.g. missing key material.
    """

    async def decrypt(self, token: str) -> Optional[str]:
        ...
