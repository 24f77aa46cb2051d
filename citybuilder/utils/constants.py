"""
citybuilder/utils/constants.py

Purpose: Centralized static values

- Build and step status enums
- Step types
- Photo limits
- Outgoing mail subjects
"""

from enum import Enum


class BuildStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class StepStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


STEP_STATUSES = {status.value for status in StepStatus}

# ============================================================
# STEP TYPES
# ============================================================

STEP_TYPE_LOT_INTAKE = "LOT_INTAKE"
STEP_TYPE_GENERAL = "GENERAL"

LOT_INTAKE_TITLE = "Lot Intake"
DEFAULT_TERRAIN_TYPE = "flat"

# ============================================================
# PHOTOS
# ============================================================

MAXIMUM_LOT_PHOTOS_ALLOWED = 8

# Lot photo references are kept for the life of the build
PHOTO_EXPIRY_YEARS = 30

# ============================================================
# ACCOUNTS
# ============================================================

MINIMUM_PASSWORD_LENGTH = 6

# ============================================================
# MAIL SUBJECTS
# ============================================================

SUBJECT_WELCOME = "Welcome to City Builder"
SUBJECT_EMAIL_VERIFICATION = "City Builder - Email Verification OTP"
SUBJECT_RESET_PASSWORD = "City Builder - Reset Password OTP"
SUBJECT_BUILD_STARTED = "City Builder - Your new build has started"
