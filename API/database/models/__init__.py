"""
Database models package.
Export all models for easy importing.
"""

# Admin accounts (MUST be imported first - other models reference admins.id)
from .admin import (
    Admin,
    AdminRole,
    APPROVER_ROLES,
    APPROVAL_EXEMPT_ROLES,
    CREDENTIAL_FIELDS,
)

# Login flow
from .login_attempt import (
    LoginAttempt,
    LoginAttemptStatus,
)
from .otp import (
    OtpCode,
    OtpPurpose,
)
from .session import AdminSession


__all__ = [
    # Admin
    'Admin',
    'AdminRole',
    'APPROVER_ROLES',
    'APPROVAL_EXEMPT_ROLES',
    'CREDENTIAL_FIELDS',

    # Login flow
    'LoginAttempt',
    'LoginAttemptStatus',
    'OtpCode',
    'OtpPurpose',
    'AdminSession',
]
