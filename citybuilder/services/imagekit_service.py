"""
citybuilder/services/imagekit_service.py

Purpose: ImageKit upload credentials

- Clients upload photos straight to ImageKit; the backend only signs
- Each call returns a fresh single-use {token, expire, signature}
- signature = HMAC-SHA1(private_key, token + expire), hex encoded
"""

import hashlib
import hmac
import time
import uuid
from typing import Dict, Optional, Union

from citybuilder.core.config import settings
from citybuilder.core.exceptions import ConfigurationError
from citybuilder.core.logging import get_logger

logger = get_logger(__name__)


def sign_upload_token(private_key: str, token: str, expire: int) -> str:
    return hmac.new(
        private_key.encode("utf-8"),
        f"{token}{expire}".encode("utf-8"),
        hashlib.sha1
    ).hexdigest()


def get_authentication_parameters(
    token: Optional[str] = None,
    expire: Optional[int] = None,
    now: Optional[float] = None
) -> Dict[str, Union[str, int]]:
    """
    Builds upload credentials for one direct upload.

    Args:
        token: Explicit token (defaults to a new UUID4)
        expire: Explicit unix expiry in seconds (defaults to now + TTL)
        now: Clock override for tests

    Raises:
        ConfigurationError: If the ImageKit private key is not configured
    """
    private_key = settings.IMAGEKIT_PRIVATE_KEY
    if not private_key:
        logger.error("IMAGEKIT_PRIVATE_KEY is not configured")
        raise ConfigurationError("Could not generate ImageKit auth parameters")

    token = token or str(uuid.uuid4())
    if expire is None:
        current = time.time() if now is None else now
        expire = int(current) + settings.IMAGEKIT_AUTH_TTL_SECONDS

    return {
        "token": token,
        "expire": expire,
        "signature": sign_upload_token(private_key, token, expire),
    }
