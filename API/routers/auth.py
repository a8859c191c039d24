"""
Authentication router.
Handles login, OTP verification, logout, registration and password reset.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from database.models import Admin
from core.dependencies import (
    get_account_service,
    get_current_admin,
    get_login_service,
    get_optional_admin,
    get_session_store,
)
from core.ip_security import extract_client_ip, extract_user_agent
from core.rate_limit import check_rate_limit
from schemas.auth import (
    AccountResponse,
    AdminInfo,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailOtpRequest,
    VerifyLoginOtpRequest,
    VerifyLoginOtpResponse,
)
from schemas.base import SuccessResponse, ErrorResponse
from services.accounts import AccountService
from services.login_flow import ClientInfo, LoginService
from services.sessions import SessionStore


router = APIRouter()


def _client_info(request: Request, device_id=None, latitude=None, longitude=None) -> ClientInfo:
    return ClientInfo(
        ip_address=extract_client_ip(request),
        user_agent=extract_user_agent(request),
        device_id=device_id,
        latitude=latitude,
        longitude=longitude,
    )


@router.post(
    "/login",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "New device waiting for approval"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
    }
)
async def login(
    data: LoginRequest,
    request: Request,
    service: LoginService = Depends(get_login_service)
):
    """
    Check email and password.

    A trusted device (or a super_admin/dev account) gets an OTP and a
    login_attempt_id to verify with. An unknown device is parked until an
    approver accepts it; the caller then logs in again.
    """
    client = _client_info(request, data.device_id, data.latitude, data.longitude)
    check_rate_limit(request.app.state.login_limiter, f"login:{client.ip_address}")
    return await service.login(data.email, data.password, client)


@router.post(
    "/verify-login-otp",
    response_model=VerifyLoginOtpResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired OTP"},
        404: {"model": ErrorResponse, "description": "Unknown login attempt"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
    }
)
async def verify_login_otp(
    data: VerifyLoginOtpRequest,
    request: Request,
    service: LoginService = Depends(get_login_service)
):
    """Exchange the emailed OTP for an access token."""
    client = _client_info(request)
    limiter = request.app.state.otp_limiter
    check_rate_limit(limiter, f"otp-ip:{client.ip_address}")
    if data.login_attempt_id:
        check_rate_limit(limiter, f"otp-attempt:{data.login_attempt_id}")
    return await service.verify_login_otp(data.login_attempt_id, data.otp, client, email=data.email)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    current_admin: Admin = Depends(get_current_admin),
    sessions: SessionStore = Depends(get_session_store)
):
    """Close every session of the current admin."""
    sessions.invalidate_all(current_admin.id)
    return SuccessResponse(message="Logged out")


@router.get("/me", response_model=AdminInfo)
async def get_me(current_admin: Admin = Depends(get_current_admin)):
    return current_admin


# ==================== REGISTRATION ====================

@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AccountResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or email taken"},
        403: {"model": ErrorResponse, "description": "Caller may not create this role"},
    }
)
async def register(
    data: RegisterRequest,
    actor: Admin = Depends(get_optional_admin),
    service: AccountService = Depends(get_account_service)
):
    """
    Create an inactive account and email it a verification code.
    The first super_admin registers without a token; any other role needs
    a logged-in super_admin, manager or dev.
    """
    return await service.register(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        phone=data.phone,
        actor=actor,
    )


@router.post("/verify-registration-otp", response_model=AccountResponse)
async def verify_registration_otp(
    data: VerifyEmailOtpRequest,
    service: AccountService = Depends(get_account_service)
):
    return service.verify_registration(data.email, data.otp)


# ==================== PASSWORD RESET ====================

@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    service: AccountService = Depends(get_account_service)
):
    check_rate_limit(request.app.state.login_limiter, f"reset:{extract_client_ip(request)}")
    return await service.request_password_reset(data.email)


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    service: AccountService = Depends(get_account_service)
):
    check_rate_limit(request.app.state.otp_limiter, f"reset-ip:{extract_client_ip(request)}")
    return service.reset_password(data.email, data.otp, data.new_password)
