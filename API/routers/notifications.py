"""
Approver notification feed: login attempts that need, or recently got,
attention. OTP codes never appear here.
"""

from fastapi import APIRouter, Depends, Path, Query

from database.models import Admin, APPROVER_ROLES, LoginAttemptStatus
from core.dependencies import get_attempt_log, get_current_admin
from core.exceptions import AuthorizationError
from schemas.auth import (
    LoginNotification,
    NotificationCountResponse,
    NotificationListResponse,
)
from services.login_attempts import LoginAttemptLog


router = APIRouter()

FEED_STATUSES = (
    LoginAttemptStatus.PENDING_APPROVAL,
    LoginAttemptStatus.OTP_SENT,
    LoginAttemptStatus.OTP_VERIFIED,
)


def _ensure_self(admin_id: int, current_admin: Admin) -> None:
    if admin_id != current_admin.id:
        raise AuthorizationError("You can only read your own notifications")


@router.get("/notifications/{admin_id}", response_model=NotificationListResponse)
async def get_notifications(
    admin_id: int = Path(..., description="Must be the caller"),
    page: int = Query(1, ge=1),
    limit: int = Query(5, ge=1, le=100),
    current_admin: Admin = Depends(get_current_admin),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    """Newest login attempts first. Non-approvers get an empty feed."""
    _ensure_self(admin_id, current_admin)

    items = []
    if current_admin.role in APPROVER_ROLES:
        rows = attempts.list_by_status(FEED_STATUSES, offset=(page - 1) * limit, limit=limit)
        items = [
            LoginNotification(
                ref_id=a.id,
                status=a.status,
                email=a.email,
                ip_address=a.ip_address,
                device_info=a.device_info,
                location=a.location,
                login_time=a.created_at,
            )
            for a in rows
        ]

    return NotificationListResponse(notifications=items, page=page, limit=limit)


@router.get("/notifications-count/{admin_id}", response_model=NotificationCountResponse)
async def get_notifications_count(
    admin_id: int = Path(..., description="Must be the caller"),
    current_admin: Admin = Depends(get_current_admin),
    attempts: LoginAttemptLog = Depends(get_attempt_log)
):
    """Number of attempts waiting for device approval."""
    _ensure_self(admin_id, current_admin)
    if current_admin.role not in APPROVER_ROLES:
        return NotificationCountResponse(count=0)
    return NotificationCountResponse(count=attempts.count_by_status(LoginAttemptStatus.PENDING_APPROVAL))
