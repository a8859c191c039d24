"""
Account service: registration and password reset, both confirmed by OTP.
"""

import logging
from typing import Any, Dict, Optional

from core.exceptions import AuthorizationError, ExpiredError, ValidationError
from core.security import get_password_hash
from database.base import get_now
from database.models import Admin, AdminRole, OtpPurpose
from services.admins import AdminRepository, normalize_email
from services.email_notifier import EmailNotifier
from services.otp import OtpLedger
from services.sessions import SessionStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


class AccountService:

    def __init__(
        self,
        admins: AdminRepository,
        otps: OtpLedger,
        sessions: SessionStore,
        notifier: EmailNotifier,
        otp_ttl_minutes: int,
    ):
        self.admins = admins
        self.otps = otps
        self.sessions = sessions
        self.notifier = notifier
        self.otp_ttl_minutes = otp_ttl_minutes

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
        role: Optional[str],
        phone: Optional[str] = None,
        actor: Optional[Admin] = None,
    ) -> Dict[str, Any]:
        """
        Create an inactive account and send it a verification code.

        A super_admin can only be registered while none exists. Every other
        role has to be created by a logged-in approver.
        """
        email = normalize_email(email)
        role = (role or "").strip().lower()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        if not (first_name or "").strip() or not (last_name or "").strip():
            raise ValidationError("First and last name are required")
        if not role:
            raise ValidationError("Role is required")
        validate_password(password)

        if role == AdminRole.SUPER_ADMIN.value:
            if self.admins.super_admin_exists():
                raise AuthorizationError("A super admin already exists")
        elif actor is None or not actor.is_approver:
            raise AuthorizationError("Only super_admin, manager or dev can create accounts")

        admin = self.admins.find_by_email(email)
        if admin is not None and (admin.is_active or admin.verified_at is not None):
            raise ValidationError("An account with this email already exists")

        if admin is None:
            admin = self.admins.add(Admin(
                email=email,
                password_hash=get_password_hash(password),
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                phone=phone,
                role=role,
                is_active=False,
            ))
            logger.info(f"Admin {admin.id} registered ({role}), awaiting verification")
        else:
            # Unverified registration: replace it and send a fresh code
            admin.password_hash = get_password_hash(password)
            admin.first_name = first_name.strip()
            admin.last_name = last_name.strip()
            admin.phone = phone
            admin.role = role
            admin = self.admins.save(admin)
            logger.info(f"Admin {admin.id} re-registered ({role}), awaiting verification")

        code = self.otps.issue(email, OtpPurpose.REGISTRATION)
        result = await self.notifier.send_registration_otp(email, code, self.otp_ttl_minutes)
        if not result.get("success"):
            logger.error(f"Registration OTP email to {email} failed: {result.get('error')}")

        return {
            "success": True,
            "message": f"Account created. A verification code was sent and expires in {self.otp_ttl_minutes} minutes",
            "admin": admin.to_public_dict(),
        }

    def verify_registration(self, email: Optional[str], code: Optional[str]) -> Dict[str, Any]:
        email = normalize_email(email)
        if not self.otps.verify(email, code, OtpPurpose.REGISTRATION):
            raise ExpiredError()

        admin = self.admins.find_by_email(email)
        if admin is None:
            raise ExpiredError()
        if admin.role == AdminRole.SUPER_ADMIN.value and not admin.is_active and self.admins.super_admin_exists():
            raise AuthorizationError("A super admin already exists")
        admin.is_active = True
        admin.verified_at = get_now()
        self.admins.save(admin)
        logger.info(f"Admin {admin.id} verified and activated")
        return {"success": True, "message": "Account verified", "admin": admin.to_public_dict()}

    async def request_password_reset(self, email: Optional[str]) -> Dict[str, Any]:
        """Same response whether or not the account exists."""
        email = normalize_email(email)
        admin = self.admins.find_active_admin_by_email(email) if email else None
        if admin is not None:
            code = self.otps.issue(admin.email, OtpPurpose.PASSWORD_RESET)
            result = await self.notifier.send_password_reset_otp(admin.email, code, self.otp_ttl_minutes)
            if not result.get("success"):
                logger.error(f"Password reset email to {admin.email} failed: {result.get('error')}")
        else:
            logger.info(f"Password reset requested for unknown or inactive email {email or '<empty>'}")

        return {
            "success": True,
            "message": (
                "If the account exists, a reset code was sent. "
                f"It expires in {self.otp_ttl_minutes} minutes"
            ),
        }

    def reset_password(self, email: Optional[str], code: Optional[str], new_password: Optional[str]) -> Dict[str, Any]:
        email = normalize_email(email)
        validate_password(new_password)
        if not self.otps.verify(email, code, OtpPurpose.PASSWORD_RESET):
            raise ExpiredError()

        admin = self.admins.find_active_admin_by_email(email)
        if admin is None:
            raise ExpiredError()
        admin.password_hash = get_password_hash(new_password)
        self.admins.save(admin)
        closed = self.sessions.invalidate_all(admin.id)
        logger.info(f"Admin {admin.id} reset password, {closed} session(s) closed")
        return {"success": True, "message": "Password updated. Please log in again"}
