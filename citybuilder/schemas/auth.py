"""
citybuilder/schemas/auth.py

Purpose: Authentication payload schemas

- Register / login / reset-password request bodies
- Public user views (never include password or OTP fields)
"""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from citybuilder.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Jane Builder",
            "email": "jane@example.com",
            "password": "s3cret!"
        }
    })


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class EmailRequest(CamelModel):
    email: Optional[str] = None


class VerifyResetOtpRequest(CamelModel):
    email: Optional[str] = None
    reset_password_otp: Optional[str] = Field(default=None, alias="resetPasswordOTP")


class ResetPasswordRequest(VerifyResetOtpRequest):
    new_password: Optional[str] = None


class ConfirmEmailOtpRequest(CamelModel):
    otp: Optional[str] = None


class UserOut(CamelModel):
    """
    Minimal user view returned after register/login/verification.
    """
    user_id: str
    name: str
    email: str


class UserProfile(CamelModel):
    """
    Full user view for the authenticated user.
    """
    id: str = Field(alias="_id")
    user_nano_id: str
    name: str
    email: str
    is_email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
