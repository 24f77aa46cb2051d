"""
citybuilder/core/security.py

Purpose: Credentials and request authentication

- bcrypt password hashing
- JWT session tokens (HS256)
- Bearer-token FastAPI dependency that resolves the calling user
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Header

from citybuilder.core.config import settings
from citybuilder.core.exceptions import AuthenticationError, ConfigurationError
from citybuilder.core.logging import get_logger
from citybuilder.db.mongo import get_users_collection
from citybuilder.utils.time_utils import utcnow
from citybuilder.utils.validation_utils import to_object_id

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

# bcrypt only reads the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


@dataclass
class CurrentUser:
    user_id: str
    name: str
    email: str


def hash_password(password: str) -> str:
    """
    Hashes a password with bcrypt at the configured cost factor.
    """
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
            password_hash.encode("utf-8")
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(user: Dict[str, Any]) -> str:
    """
    Issues a session token carrying userId, name and email.

    Args:
        user: User document (must contain _id, name, email)

    Returns:
        Encoded JWT string
    """
    if not settings.JWT_SECRET:
        raise ConfigurationError()

    issued_at = utcnow()
    payload = {
        "userId": str(user["_id"]),
        "name": user.get("name", ""),
        "email": user.get("email", ""),
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verifies signature and expiry.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, forged or expired
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


async def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    """
    FastAPI dependency guarding private routes.

    Expects `Authorization: Bearer <JWT>` and resolves the token's userId to
    an existing user document.
    """
    if not authorization:
        raise AuthenticationError("Unauthorized - no token - please login")

    if not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Unauthorized - invalid token format - please login")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError("Unauthorized - no token - please login")

    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET is missing from configuration")
        raise ConfigurationError()

    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationError()

    user_oid = to_object_id(payload.get("userId"))
    if user_oid is None:
        raise AuthenticationError()

    user = await get_users_collection().find_one(
        {"_id": user_oid},
        {"name": 1, "email": 1}
    )
    if not user:
        raise AuthenticationError()

    return CurrentUser(
        user_id=str(user["_id"]),
        name=user.get("name", ""),
        email=user.get("email", ""),
    )
