"""
citybuilder/utils/time_utils.py

Purpose: Time and expiry helpers

- OTP expiry calculation and checks
- Long-lived photo expiry stamps
- Timestamp formatting
"""

from datetime import datetime, timedelta
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the Mongo driver hands back."""
    return datetime.utcnow()


def calculate_otp_expiry(otp_time: datetime, validity_minutes: int = 15) -> datetime:
    """
    Calculates OTP expiry timestamp.
    """
    return otp_time + timedelta(minutes=validity_minutes)


def is_otp_expired(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Checks if an OTP has expired.
    A code without an expiry stamp is never accepted.
    """
    if expiry is None:
        return True
    now = now or utcnow()
    if expiry.tzinfo is not None:
        expiry = expiry.replace(tzinfo=None) - (expiry.utcoffset() or timedelta(0))
    return expiry < now


def years_from(start: datetime, years: int) -> datetime:
    """
    Same calendar date `years` later; Feb 29 falls back to Feb 28.
    """
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def format_timestamp(dt: Optional[datetime], format_str: str = "%A, %B %d, %Y %I:%M %p UTC") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)
