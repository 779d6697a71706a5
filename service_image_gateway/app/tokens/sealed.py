"""
Sealed image tokens: the image URL encrypted to the gateway's secp256k1 key.

Token layout (base64 of the concatenation)::

    iv (12 bytes) | ephemeral public key (65 bytes, uncompressed) | ciphertext | tag (16 bytes)

The AES-256-GCM key is HMAC-SHA256(ECDH shared secret, "AES-GCM") and the
associated data is the fixed string "Rabita".
"""

import base64
import binascii
import hashlib
import hmac
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import SecretStr

from shared.errors import TokenDecryptionError
from shared.logging import get_logger

IV_LENGTH = 12
PUBLIC_KEY_LENGTH = 65
TAG_LENGTH = 16
ASSOCIATED_DATA = b"Rabita"
KEY_DERIVATION_LABEL = b"AES-GCM"


def derive_symmetric_key(shared_secret: bytes) -> bytes:
    """Derive the AES-256 key from an ECDH shared secret."""
    return hmac.new(shared_secret, KEY_DERIVATION_LABEL, hashlib.sha256).digest()


def load_private_key(private_key_hex: str) -> ec.EllipticCurvePrivateKey:
    """Load a hex encoded (optionally 0x-prefixed) secp256k1 private key."""
    cleaned = private_key_hex[2:] if private_key_hex.startswith("0x") else private_key_hex
    try:
        value = int(cleaned, 16)
        return ec.derive_private_key(value, ec.SECP256K1())
    except ValueError as e:
        raise TokenDecryptionError("Image token private key is invalid") from e


def _b64decode(token: str) -> bytes:
    # Accept both the standard and the URL-safe alphabet, padded or not.
    normalized = token.strip().replace("-", "+").replace("_", "/").replace(" ", "+")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


class SealedTokenDecryptor:
    """ECIES-style decryption of image tokens."""

    def __init__(self, private_key: Optional[SecretStr]):
        self._private_key_secret = private_key
        self._private_key: Optional[ec.EllipticCurvePrivateKey] = None
        self.logger = get_logger("image_gateway.sealed_tokens")

    def _get_private_key(self) -> ec.EllipticCurvePrivateKey:
        if self._private_key is None:
            if self._private_key_secret is None or not self._private_key_secret.get_secret_value():
                raise TokenDecryptionError("Image token private key is not configured")
            self._private_key = load_private_key(self._private_key_secret.get_secret_value())
        return self._private_key

    async def decrypt(self, token: str) -> Optional[str]:
        private_key = self._get_private_key()

        try:
            combined = _b64decode(token)
        except (binascii.Error, ValueError):
            self.logger.warning("Sealed image token is not valid base64")
            return None

        if len(combined) < IV_LENGTH + PUBLIC_KEY_LENGTH + TAG_LENGTH:
            self.logger.warning("Sealed image token is too short", length=len(combined))
            return None

        iv = combined[:IV_LENGTH]
        ephemeral_key = combined[IV_LENGTH:IV_LENGTH + PUBLIC_KEY_LENGTH]
        ciphertext_and_tag = combined[IV_LENGTH + PUBLIC_KEY_LENGTH:]

        try:
            peer_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), ephemeral_key)
            shared_secret = private_key.exchange(ec.ECDH(), peer_key)
        except ValueError:
            self.logger.warning("Sealed image token carries an invalid ephemeral key")
            return None

        key = derive_symmetric_key(shared_secret)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext_and_tag, ASSOCIATED_DATA)
        except InvalidTag:
            self.logger.warning("Sealed image token failed authentication")
            return None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            return None
