"""
citybuilder/services/otp_service.py

Purpose: One-time passcodes for email verification and password reset

- 6-digit numeric codes from a CSPRNG
- Fixed validity window (OTP_EXPIRE_MINUTES)
- Constant-time comparison with an explicit outcome
"""

import hmac
import secrets
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from citybuilder.core.config import settings
from citybuilder.utils.time_utils import calculate_otp_expiry, is_otp_expired, utcnow


class OtpCheck(str, Enum):
    OK = "ok"
    MISSING = "missing"      # nothing stored for this user
    MISMATCH = "mismatch"
    EXPIRED = "expired"


def generate_otp() -> str:
    """
    Returns a 6-digit code in [100000, 999999].
    """
    return str(100000 + secrets.randbelow(900000))


def issue_otp(now: Optional[datetime] = None) -> Tuple[str, datetime]:
    """
    Generates a fresh code and its expiry timestamp.
    """
    now = now or utcnow()
    return generate_otp(), calculate_otp_expiry(now, settings.OTP_EXPIRE_MINUTES)


def check_otp(
    stored: Optional[str],
    expiry: Optional[datetime],
    submitted: Optional[str],
    now: Optional[datetime] = None
) -> OtpCheck:
    """
    Compares a submitted code against the stored one.

    Checks run in order: missing, mismatch, expired.
    """
    if not stored:
        return OtpCheck.MISSING

    if not submitted or not hmac.compare_digest(stored.encode("utf-8"), submitted.strip().encode("utf-8")):
        return OtpCheck.MISMATCH

    if is_otp_expired(expiry, now):
        return OtpCheck.EXPIRED

    return OtpCheck.OK
