"""
Signed image tokens (HS256 JWT carrying the image URL).
"""

from typing import Optional

import jwt
from pydantic import SecretStr

from shared.errors import TokenDecryptionError
from shared.logging import get_logger


class SignedTokenDecryptor:
    """Verify an HS256 JWT and return its ``url`` claim.

    Tokens must carry ``exp``. When an audience is configured, ``aud`` must
    match it.
    """

    algorithms = ["HS256"]

    def __init__(self, secret: Optional[SecretStr], audience: Optional[str] = None, leeway: float = 0.0):
        self._secret = secret
        self.audience = audience
        self.leeway = leeway
        self.logger = get_logger("image_gateway.signed_tokens")

    async def decrypt(self, token: str) -> Optional[str]:
        if self._secret is None or not self._secret.get_secret_value():
            raise TokenDecryptionError("Image token secret is not configured")

        options = {"require": ["exp"]}
        if self.audience:
            options["require"].append("aud")

        try:
            claims = jwt.decode(
                token,
                self._secret.get_secret_value(),
                algorithms=self.algorithms,
                audience=self.audience,
                leeway=self.leeway,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            self.logger.info("Image token expired")
            return None
        except jwt.InvalidTokenError as e:
            self.logger.warning("Image token rejected", reason=type(e).__name__)
            return None

        url = claims.get("url")
        if not isinstance(url, str):
            self.logger.warning("Image token has no url claim")
            return None
        return url
