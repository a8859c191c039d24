"""
Authentication schemas: login, OTP verification, device approval,
registration and password reset.

Request fields are optional where the service itself produces the
generic failure (missing email/password must look like bad credentials).
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


# ==================== ADMIN ====================

class AdminInfo(BaseModel):
    """Admin record as returned to clients. Never carries credentials."""

    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ==================== LOGIN ====================

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    device_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    login_attempt_id: int
    status: str
    otp_sent_to: str
    expires_in: int


class VerifyLoginOtpRequest(BaseModel):
    login_attempt_id: Optional[int] = None
    otp: Optional[str] = None
    email: Optional[str] = None


class VerifyLoginOtpResponse(BaseModel):
    success: bool = True
    message: str
    login_attempt_id: int
    admin: AdminInfo
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ==================== DEVICE APPROVAL ====================

class ApproveDeviceRequest(BaseModel):
    login_attempt_id: Optional[int] = None
    approve: bool = Field(..., description="true approves the device, false blocks it")


class ApproveDeviceResponse(BaseModel):
    success: bool = True
    message: str
    login_attempt_id: int
    status: str
    already_resolved: bool = False


class LoginAttemptInfo(BaseModel):
    id: int
    admin_id: Optional[int] = None
    email: Optional[str] = None
    device_id: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    location_source: Optional[str] = None
    status: str
    failure_reason: Optional[str] = None
    approved_by: Optional[int] = None
    approved_by_role: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LoginAttemptListResponse(BaseModel):
    data: List[LoginAttemptInfo]
    total: int


# ==================== NOTIFICATIONS ====================

class LoginNotification(BaseModel):
    type: str = "login_attempt"
    ref_id: int
    status: str
    email: Optional[str] = None
    ip_address: Optional[str] = None
    device_info: Optional[str] = None
    location: Optional[str] = None
    login_time: datetime


class NotificationListResponse(BaseModel):
    notifications: List[LoginNotification]
    page: int
    limit: int


class NotificationCountResponse(BaseModel):
    count: int


# ==================== REGISTRATION / PASSWORD RESET ====================

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None


class AccountResponse(BaseModel):
    success: bool = True
    message: str
    admin: AdminInfo


class VerifyEmailOtpRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None
    new_password: Optional[str] = None
