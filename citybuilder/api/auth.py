"""
citybuilder/api/auth.py

Purpose: Authentication endpoints

- Public: register, login, logout, three-step password reset
- Private (bearer token): email verification, user info
"""

from typing import Optional

from fastapi import APIRouter, Depends

from citybuilder.core.logging import get_logger
from citybuilder.core.security import CurrentUser, get_current_user
from citybuilder.schemas.auth import (
    ConfirmEmailOtpRequest,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserOut,
    UserProfile,
    VerifyResetOtpRequest,
)
from citybuilder.schemas.common import to_api
from citybuilder.services import auth_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/register")
async def register(payload: RegisterRequest):
    user = await auth_service.register(payload.name, payload.email, payload.password)
    return {
        "success": True,
        "message": "User has been created successfully and welcome email has been sent",
        "user": to_api(UserOut, user),
    }


@router.post("/login")
async def login(payload: LoginRequest):
    result = await auth_service.login(payload.email, payload.password)
    return {
        "success": True,
        "message": "User has been logged in successfully",
        "token": result["token"],
        "user": to_api(UserOut, result["user"]),
    }


@router.post("/logout")
async def logout():
    """
    Sessions are stateless JWTs; the client discards its token.
    """
    return {"success": True, "message": "Logged out successfully"}


# ============================================================
# PASSWORD RESET (public)
# ============================================================

@router.post("/send-reset-password-email")
async def send_reset_password_email(payload: EmailRequest):
    await auth_service.send_reset_password_email(payload.email)
    return {
        "success": True,
        "message": "New OTP has been generated and sent to the user's email",
    }


@router.post("/verify-reset-password-otp")
async def verify_reset_password_otp(payload: VerifyResetOtpRequest):
    await auth_service.verify_reset_password_otp(payload.email, payload.reset_password_otp)
    return {
        "success": True,
        "message": "OTP verified successfully, you can now reset your password",
    }


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest):
    await auth_service.reset_password(payload.email, payload.reset_password_otp, payload.new_password)
    return {
        "success": True,
        "message": "Password has been reset successfully, you can now login",
    }


# ============================================================
# EMAIL VERIFICATION (private)
# ============================================================

@router.post("/send-email-verification-otp")
async def send_email_verification_otp(current_user: CurrentUser = Depends(get_current_user)):
    await auth_service.send_email_verification_otp(current_user)
    return {
        "success": True,
        "message": "New OTP has been generated and sent to the user's email",
    }


@router.post("/confirm-email-verification-otp")
async def confirm_email_verification_otp(
    payload: Optional[ConfirmEmailOtpRequest] = None,
    current_user: CurrentUser = Depends(get_current_user)
):
    user = await auth_service.confirm_email_verification_otp(
        current_user,
        payload.otp if payload else None
    )
    return {
        "success": True,
        "message": "Email has been verified successfully",
        "user": to_api(UserOut, user),
    }


# ============================================================
# USER INFO (private)
# ============================================================

@router.get("/get-user-info")
async def get_user_info(current_user: CurrentUser = Depends(get_current_user)):
    user = await auth_service.get_user_profile(current_user)
    return {
        "success": True,
        "message": "User info retrieved successfully",
        "user": to_api(UserProfile, user),
    }


@router.get("/authenticated-user-info")
async def authenticated_user_info(current_user: CurrentUser = Depends(get_current_user)):
    user = await auth_service.get_user_profile(current_user)
    return {
        "success": True,
        "message": "User is authenticated",
        "user": to_api(UserProfile, user),
    }
