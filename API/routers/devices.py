"""
Device approval and login attempt administration.
Only super_admin, manager and dev accounts reach these endpoints.
"""

from fastapi import APIRouter, Depends, Path

from database.models import Admin
from core.dependencies import get_attempt_log, get_login_service, require_approver
from core.exceptions import AuthorizationError, NotFoundError
from schemas.auth import (
    ApproveDeviceRequest,
    ApproveDeviceResponse,
    LoginAttemptInfo,
    LoginAttemptListResponse,
)
from schemas.base import SuccessResponse, ErrorResponse
from services.login_attempts import LoginAttemptLog
from services.login_flow import LoginService


router = APIRouter()


def _attempt_list(attempts) -> LoginAttemptListResponse:
    return LoginAttemptListResponse(
        data=[LoginAttemptInfo.model_validate(a) for a in attempts],
        total=len(attempts),
    )


@router.post(
    "/approve-device",
    response_model=ApproveDeviceResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not an approver, or own attempt"},
        404: {"model": ErrorResponse, "description": "Unknown login attempt"},
        409: {"model": ErrorResponse, "description": "Attempt changed concurrently"},
    }
)
async def approve_device(
    data: ApproveDeviceRequest,
    approver: Admin = Depends(require_approver),
    service: LoginService = Depends(get_login_service)
):
    """Approve (trust) or reject (block) a new device."""
    return await service.resolve_device_approval(data.login_attempt_id, data.approve, approver)


@router.post("/approve-device/{admin_id}", response_model=ApproveDeviceResponse)
async def approve_device_as(
    data: ApproveDeviceRequest,
    admin_id: int = Path(..., description="Approver id, must be the caller"),
    approver: Admin = Depends(require_approver),
    service: LoginService = Depends(get_login_service)
):
    if admin_id != approver.id:
        raise AuthorizationError("You can only approve devices as yourself")
    return await service.resolve_device_approval(data.login_attempt_id, data.approve, approver)


@router.get("/pending-login-attempts", response_model=LoginAttemptListResponse)
async def list_pending_attempts(
    approver: Admin = Depends(require_approver),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    """Attempts still waiting on approval or OTP verification."""
    return _attempt_list(attempts.list_pending())


@router.get("/pending-login-attempts/{admin_id}", response_model=LoginAttemptListResponse)
async def list_pending_attempts_for_admin(
    admin_id: int = Path(..., description="Admin whose attempts to list"),
    approver: Admin = Depends(require_approver),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    return _attempt_list(attempts.list_pending(admin_id))


@router.get("/login_attempts/today", response_model=LoginAttemptListResponse)
async def list_today_attempts(
    approver: Admin = Depends(require_approver),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    return _attempt_list(attempts.list_today())


@router.delete("/login_attempts/{attempt_id}", response_model=SuccessResponse)
async def delete_login_attempt(
    attempt_id: int = Path(..., description="Login attempt id"),
    approver: Admin = Depends(require_approver),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    """Administrative purge of one login attempt."""
    if not attempts.delete(attempt_id):
        raise NotFoundError("Login attempt not found")
    return SuccessResponse(message="Login attempt deleted")
