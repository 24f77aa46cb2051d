"""
citybuilder/services/auth_service.py

Purpose: Account management

- Registration and login
- Email verification (send + confirm OTP)
- Three-step password reset (send OTP, verify OTP, reset)
- Authenticated user lookups
"""

import asyncio
import secrets
from typing import Any, Dict, Optional

from pymongo.errors import DuplicateKeyError

from citybuilder.core.config import settings
from citybuilder.core.exceptions import BadRequestError
from citybuilder.core.logging import get_logger, LogContext
from citybuilder.core.security import CurrentUser, create_access_token, hash_password, verify_password
from citybuilder.db.mongo import get_users_collection
from citybuilder.services import mail_service
from citybuilder.services.otp_service import OtpCheck, check_otp, issue_otp
from citybuilder.utils.constants import MINIMUM_PASSWORD_LENGTH
from citybuilder.utils.time_utils import utcnow
from citybuilder.utils.validation_utils import normalize_email, to_object_id

logger = get_logger(__name__)

# Never leave the users collection through the API
PRIVATE_USER_FIELDS = {
    "password": 0,
    "account_verification_otp": 0,
    "account_verification_otp_expiry": 0,
    "reset_password_otp": 0,
    "reset_password_otp_expiry": 0,
}


def public_user(user: Dict[str, Any]) -> Dict[str, str]:
    return {
        "user_id": str(user["_id"]),
        "name": user.get("name", ""),
        "email": user.get("email", ""),
    }


def new_user_document(name: str, email: str, password_hash: str) -> Dict[str, Any]:
    now = utcnow()
    return {
        "user_nano_id": secrets.token_hex(6),
        "name": name,
        "email": email,
        "password": password_hash,
        "is_email_verified": False,
        "account_verification_otp": "",
        "account_verification_otp_expiry": None,
        "reset_password_otp": "",
        "reset_password_otp_expiry": None,
        "reset_password_at": now,
        "account_verified_at": now,
        "expo_push_token": "",
        "deleted_at": None,
        "created_at": now,
        "updated_at": now,
    }


async def _find_by_email(email: str) -> Optional[Dict[str, Any]]:
    return await get_users_collection().find_one({"email": normalize_email(email)})


async def _require_user_by_email(email: str) -> Dict[str, Any]:
    user = await _find_by_email(email)
    if not user:
        raise BadRequestError("User does not exist with this email, please register")
    return user


async def _require_user_by_id(user_id: str, message: str) -> Dict[str, Any]:
    user_oid = to_object_id(user_id)
    user = await get_users_collection().find_one({"_id": user_oid}) if user_oid else None
    if not user:
        raise BadRequestError(message)
    return user


# ============================================================
# REGISTER / LOGIN
# ============================================================

async def register(name: Optional[str], email: Optional[str], password: Optional[str]) -> Dict[str, str]:
    """
    Creates an account and sends a welcome email.

    Raises:
        BadRequestError: Missing fields, short password, or email already taken
    """
    if not name or not email or not password:
        raise BadRequestError("Name, email, and password are required and must be a string")

    email = normalize_email(email)
    name = name.strip()

    with LogContext(email=email):
        if len(password) < MINIMUM_PASSWORD_LENGTH:
            raise BadRequestError(
                f"Password must be at least {MINIMUM_PASSWORD_LENGTH} characters long"
            )

        if await _find_by_email(email):
            raise BadRequestError("User already exists with this email; please login")

        password_hash = await asyncio.to_thread(hash_password, password)
        user = new_user_document(name, email, password_hash)

        try:
            await get_users_collection().insert_one(user)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration
            raise BadRequestError("User already exists with this email; please login")

        logger.info("New user registered", extra={"user_id": str(user["_id"])})

        await mail_service.try_send_welcome_email(email, name)

        return public_user(user)


async def login(email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    """
    Verifies credentials and issues a session token.

    Returns:
        {"token": str, "user": {user_id, name, email}}
    """
    if not email or not password:
        raise BadRequestError("Email and password are required and must be a string")

    user = await _find_by_email(email)
    if not user:
        raise BadRequestError("User does not exist with this email, please register")

    matches = await asyncio.to_thread(verify_password, password, user.get("password", ""))
    if not matches:
        logger.info("Login rejected: wrong password", extra={"user_id": str(user["_id"])})
        raise BadRequestError("Invalid password, please try again")

    logger.info("User logged in", extra={"user_id": str(user["_id"])})
    return {"token": create_access_token(user), "user": public_user(user)}


# ============================================================
# EMAIL VERIFICATION
# ============================================================

async def send_email_verification_otp(current_user: CurrentUser) -> None:
    """
    Generates a verification OTP for the logged-in user and emails it.
    """
    with LogContext(user_id=current_user.user_id):
        user = await _require_user_by_id(
            current_user.user_id,
            "User does not exist with this ID, please register, then login again"
        )
        if user.get("is_email_verified"):
            raise BadRequestError("Email is already verified, no need to verify again, please re-login")

        otp, expiry = issue_otp()
        await get_users_collection().update_one(
            {"_id": user["_id"]},
            {"$set": {
                "account_verification_otp": otp,
                "account_verification_otp_expiry": expiry,
                "updated_at": utcnow(),
            }}
        )

        sent = await mail_service.send_email_verification_otp(user["email"], otp)
        if not sent and settings.is_development:
            logger.debug(f"Email verification OTP for {user['email']}: {otp}")
        logger.info("Email verification OTP issued")


async def confirm_email_verification_otp(current_user: CurrentUser, otp: Optional[str]) -> Dict[str, str]:
    """
    Marks the user's email verified when the OTP matches and is still valid.
    The stored code is cleared on success.
    """
    if not otp:
        raise BadRequestError("OTP is required to verify email, please enter the OTP sent via email")

    with LogContext(user_id=current_user.user_id):
        user = await _require_user_by_id(
            current_user.user_id,
            "User does not exist with this ID, please register, then login again"
        )
        if user.get("is_email_verified"):
            raise BadRequestError("Email is already verified, no need to verify again, please re-login")

        outcome = check_otp(
            user.get("account_verification_otp"),
            user.get("account_verification_otp_expiry"),
            otp
        )
        if outcome is OtpCheck.MISSING:
            raise BadRequestError("OTP is not valid, please request a new OTP via email")
        if outcome is OtpCheck.MISMATCH:
            raise BadRequestError("Invalid OTP, please enter the OTP sent via email")
        if outcome is OtpCheck.EXPIRED:
            raise BadRequestError("OTP has expired, please generate a new OTP via email")

        now = utcnow()
        await get_users_collection().update_one(
            {"_id": user["_id"]},
            {"$set": {
                "is_email_verified": True,
                "account_verification_otp": "",
                "account_verification_otp_expiry": None,
                "account_verified_at": now,
                "updated_at": now,
            }}
        )
        logger.info("Email verified")
        return public_user(user)


# ============================================================
# PASSWORD RESET (send -> verify -> reset)
# ============================================================

async def send_reset_password_email(email: Optional[str]) -> None:
    if not email:
        raise BadRequestError("Email is required, please enter a valid email")

    user = await _require_user_by_email(email)

    with LogContext(user_id=str(user["_id"])):
        otp, expiry = issue_otp()
        await get_users_collection().update_one(
            {"_id": user["_id"]},
            {"$set": {
                "reset_password_otp": otp,
                "reset_password_otp_expiry": expiry,
                "updated_at": utcnow(),
            }}
        )

        sent = await mail_service.send_reset_password_otp(user["email"], otp)
        if not sent and settings.is_development:
            logger.debug(f"Reset password OTP for {user['email']}: {otp}")
        logger.info("Reset password OTP issued")


def _raise_for_reset_outcome(outcome: OtpCheck) -> None:
    if outcome is OtpCheck.MISSING:
        raise BadRequestError("No reset OTP found, please request a new one")
    if outcome is OtpCheck.MISMATCH:
        raise BadRequestError("Invalid OTP, please enter the correct OTP sent to your email")
    if outcome is OtpCheck.EXPIRED:
        raise BadRequestError("OTP has expired, please request a new one")


async def verify_reset_password_otp(email: Optional[str], otp: Optional[str]) -> None:
    """
    Checks a reset OTP without consuming it, so the client can move on to
    the new-password screen.
    """
    if not email or not otp:
        raise BadRequestError("Email and OTP are required")

    user = await _require_user_by_email(email)
    _raise_for_reset_outcome(
        check_otp(user.get("reset_password_otp"), user.get("reset_password_otp_expiry"), otp)
    )


async def reset_password(email: Optional[str], otp: Optional[str], new_password: Optional[str]) -> None:
    """
    Replaces the password when the reset OTP is valid. The OTP is single use.
    """
    if not email or not otp or not new_password:
        raise BadRequestError("Email, OTP, and new password are required")

    if len(new_password) < MINIMUM_PASSWORD_LENGTH:
        raise BadRequestError(
            f"Password must be at least {MINIMUM_PASSWORD_LENGTH} characters long"
        )

    user = await _require_user_by_email(email)

    with LogContext(user_id=str(user["_id"])):
        _raise_for_reset_outcome(
            check_otp(user.get("reset_password_otp"), user.get("reset_password_otp_expiry"), otp)
        )

        password_hash = await asyncio.to_thread(hash_password, new_password)
        now = utcnow()

        # Guard on the code we checked so two concurrent resets cannot both win
        result = await get_users_collection().update_one(
            {"_id": user["_id"], "reset_password_otp": user.get("reset_password_otp")},
            {"$set": {
                "password": password_hash,
                "reset_password_otp": "",
                "reset_password_otp_expiry": None,
                "reset_password_at": now,
                "updated_at": now,
            }}
        )
        if result.matched_count == 0:
            raise BadRequestError("No reset OTP found, please request a new one")

        logger.info("Password reset")


# ============================================================
# USER INFO
# ============================================================

async def get_user_profile(current_user: CurrentUser) -> Dict[str, Any]:
    user_oid = to_object_id(current_user.user_id)
    user = await get_users_collection().find_one({"_id": user_oid}, PRIVATE_USER_FIELDS)
    if not user:
        raise BadRequestError("User does not exist, please register")
    return user
