"""
citybuilder/utils/validation_utils.py

Purpose: Input validation and normalization

- Email normalization
- Lenient numeric parsing for prices and costs
- Photo reference sanitization
- ObjectId parsing
"""

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")


def normalize_email(email: Optional[str]) -> str:
    """
    Trims and lowercases an email address.
    """
    return (email or "").strip().lower()


def clean_text(value: Any) -> str:
    """
    Coerces any value to a trimmed string; None and empty values become "".
    """
    if value is None or value is False:
        return ""
    return str(value).strip()


def is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def parse_cost(value: Any) -> float:
    """
    Parses a cost the way a form field is read: the leading number wins,
    anything unparseable, infinite or negative is 0.

    Examples:
        "1200.50" -> 1200.5
        "300 USD" -> 300.0
        "abc"     -> 0.0
        -5        -> 0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return 0.0
        parsed = float(match.group(0))

    if math.isnan(parsed) or math.isinf(parsed) or parsed < 0:
        return 0.0
    return parsed


def parse_price(value: Any) -> Optional[float]:
    """
    Strict numeric parse for prices. Returns None unless the whole value is a
    finite number greater than zero.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed) or parsed <= 0:
        return None
    return parsed


def to_object_id(value: Any) -> Optional[ObjectId]:
    """
    Converts a string id to ObjectId. Malformed ids return None so callers can
    answer "not found" instead of a server error.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _pick(photo: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in photo:
            return photo[key]
    return None


def _parse_expiry(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def normalize_lot_photos(photos: Any, limit: int, expires_at: datetime) -> List[Dict[str, Any]]:
    """
    Normalizes the photo list sent with a new build.

    The first `limit` entries are taken, every field is coerced to a trimmed
    string, and entries without a file id or url are dropped afterwards.
    """
    if not isinstance(photos, list):
        return []

    normalized = []
    for photo in photos[:limit]:
        photo = photo if isinstance(photo, dict) else {}
        normalized.append({
            "image_kit_file_id": clean_text(_pick(photo, "imageKitFileId", "image_kit_file_id")),
            "url": clean_text(photo.get("url")),
            "thumbnail_url": clean_text(_pick(photo, "thumbnailUrl", "thumbnail_url")),
            "name": clean_text(photo.get("name")),
            "expires_at": expires_at,
        })

    return [p for p in normalized if p["image_kit_file_id"] and p["url"]]


def sanitize_step_photos(photos: List[Any], limit: int) -> List[Dict[str, Any]]:
    """
    Sanitizes the full photo list sent with a step update.

    Only objects carrying a non-blank string file id and url survive;
    the thumbnail falls back to the url. The result is capped at `limit`.
    """
    sanitized = []
    for photo in photos:
        if not isinstance(photo, dict):
            continue
        file_id = _pick(photo, "imageKitFileId", "image_kit_file_id")
        url = photo.get("url")
        if is_blank(file_id) or is_blank(url):
            continue

        thumbnail = _pick(photo, "thumbnailUrl", "thumbnail_url")
        name = photo.get("name")
        sanitized.append({
            "image_kit_file_id": file_id.strip(),
            "url": url.strip(),
            "thumbnail_url": thumbnail.strip() if isinstance(thumbnail, str) else url.strip(),
            "name": name.strip() if isinstance(name, str) else "",
            "expires_at": _parse_expiry(_pick(photo, "expiresAt", "expires_at")),
        })

    return sanitized[:limit]


def photo_summary(photos: Any) -> List[Dict[str, str]]:
    """
    Reduces stored photos to the fields list views render.
    """
    if not isinstance(photos, list):
        return []
    return [
        {
            "url": photo.get("url") or "",
            "thumbnail_url": photo.get("thumbnail_url") or "",
            "name": photo.get("name") or "",
        }
        for photo in photos
        if isinstance(photo, dict)
    ]
