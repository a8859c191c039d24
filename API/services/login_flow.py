"""
Login state machine.

    credentials ──fail──────────────────────────────► failed
        │ ok
        ├─ new device, role not super_admin/dev ──────► pending_approval ──► approved | rejected | failed
        │                                                   (approved: user logs in again, device now trusted)
        └─ trusted device or super_admin/dev ─────────► pending_otp ──► otp_sent ──► otp_verified | otp_failed | failed

Each step is a separate store round-trip with no wrapping transaction. A
crash between steps leaves a non-terminal attempt behind; the expiry sweeper
fails it later. Notification and geolocation failures are logged and never
abort the flow.
"""

import logging
from typing import Any, Dict, Optional

from core.exceptions import (
    ApprovalPendingError,
    AuthenticationError,
    AuthorizationError,
    ExpiredError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from core.security import verify_password
from database.models import (
    Admin,
    APPROVAL_EXEMPT_ROLES,
    APPROVER_ROLES,
    LoginAttempt,
    LoginAttemptStatus,
)
from services.admins import AdminRepository, normalize_email
from services.device_trust import DeviceTrustEvaluator
from services.email_notifier import EmailNotifier
from services.geolocation import GeoLocator, UNKNOWN_LOCATION
from services.login_attempts import LoginAttemptLog
from services.otp import OtpLedger
from services.sessions import SessionStore

logger = logging.getLogger(__name__)

_S = LoginAttemptStatus


class ClientInfo:
    """Request-side facts recorded on every attempt."""

    def __init__(
        self,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        device_id: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ):
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.device_id = (device_id or "").strip() or None
        self.latitude = latitude
        self.longitude = longitude


class LoginService:
    """Orchestrates login, OTP verification and device approval."""

    def __init__(
        self,
        admins: AdminRepository,
        otps: OtpLedger,
        attempts: LoginAttemptLog,
        device_trust: DeviceTrustEvaluator,
        sessions: SessionStore,
        notifier: EmailNotifier,
        geolocator: GeoLocator,
        otp_ttl_minutes: int,
    ):
        self.admins = admins
        self.otps = otps
        self.attempts = attempts
        self.device_trust = device_trust
        self.sessions = sessions
        self.notifier = notifier
        self.geolocator = geolocator
        self.otp_ttl_minutes = otp_ttl_minutes

    # ==================== LOGIN ====================

    async def login(self, email: Optional[str], password: Optional[str], client: ClientInfo) -> Dict[str, Any]:
        """
        Check credentials, then either park the attempt for device approval
        (raises ApprovalPendingError) or issue an OTP and return the attempt id.
        """
        email = normalize_email(email)
        admin = self._check_credentials(email, password, client)

        location, location_source = await self._locate(client)

        trusted = self.device_trust.is_trusted(admin.id, client.device_id)
        if not trusted and admin.role not in APPROVAL_EXEMPT_ROLES:
            await self._request_device_approval(admin, client, location, location_source)

        return await self._issue_login_otp(admin, client, location, location_source)

    def _check_credentials(self, email: str, password: Optional[str], client: ClientInfo) -> Admin:
        admin = None
        if not email or not password:
            reason = "missing_credentials"
        else:
            admin = self.admins.find_by_email(email)
            if admin is None:
                reason = "user_not_found"
            elif not admin.is_active:
                reason = "inactive"
            elif not verify_password(password, admin.password_hash):
                reason = "wrong_password"
            else:
                return admin

        self.attempts.create(
            _S.FAILED,
            email=email or None,
            admin_id=admin.id if admin else None,
            device_id=client.device_id,
            device_info=client.user_agent,
            ip_address=client.ip_address,
            failure_reason=reason,
        )
        logger.info(f"Login rejected for {email or '<empty>'}: {reason}")
        raise AuthenticationError()

    async def _locate(self, client: ClientInfo):
        try:
            return await self.geolocator.locate(client.ip_address, client.latitude, client.longitude)
        except Exception as e:
            logger.warning(f"Location lookup failed for {client.ip_address}: {e}")
            return UNKNOWN_LOCATION, None

    async def _request_device_approval(
        self, admin: Admin, client: ClientInfo, location: str, location_source: Optional[str]
    ) -> None:
        attempt = self._create_attempt(_S.PENDING_APPROVAL, admin, client, location, location_source)
        payload = {"login_attempt_id": attempt.id, "status": attempt.status}

        approvers = self.admins.list_approvers(exclude_admin_id=admin.id)
        if not approvers:
            logger.warning(f"Login attempt {attempt.id}: no approver available for {admin.email}")
            raise AuthorizationError("No approver is available to approve this device", payload)

        result = await self.notifier.send_approval_request(
            [a.email for a in approvers],
            admin_email=admin.email,
            ip_address=client.ip_address,
            device_info=client.user_agent,
            location=location,
            login_attempt_id=attempt.id,
        )
        if not result.get("success"):
            logger.error(f"Login attempt {attempt.id}: approval request email failed: {result.get('error')}")

        raise ApprovalPendingError(payload=payload)

    async def _issue_login_otp(
        self, admin: Admin, client: ClientInfo, location: str, location_source: Optional[str]
    ) -> Dict[str, Any]:
        if admin.role in APPROVER_ROLES:
            recipients = [admin.email]
            routed_to = "self"
        else:
            recipients = [a.email for a in self.admins.list_approvers(exclude_admin_id=admin.id)]
            routed_to = "approvers"
            if not recipients:
                attempt = self._create_attempt(
                    _S.FAILED, admin, client, location, location_source, failure_reason="no_approver"
                )
                raise AuthorizationError(
                    "No approver is available to receive the OTP",
                    {"login_attempt_id": attempt.id, "status": attempt.status},
                )

        attempt = self._create_attempt(_S.PENDING_OTP, admin, client, location, location_source)
        code = self.otps.issue(admin.email)
        attempt = self.attempts.update_status(attempt.id, _S.OTP_SENT, expected=_S.PENDING_OTP)

        result = await self.notifier.send_login_otp(recipients, admin.email, code, self.otp_ttl_minutes)
        if not result.get("success"):
            logger.error(f"Login attempt {attempt.id}: OTP email failed: {result.get('error')}")

        if routed_to == "self":
            message = f"OTP sent to your email. It expires in {self.otp_ttl_minutes} minutes"
        else:
            message = (
                f"OTP sent to an administrator for approval. "
                f"It expires in {self.otp_ttl_minutes} minutes"
            )
        return {
            "success": True,
            "message": message,
            "login_attempt_id": attempt.id,
            "status": attempt.status,
            "otp_sent_to": routed_to,
            "expires_in": self.otp_ttl_minutes * 60,
        }

    def _create_attempt(
        self,
        status: LoginAttemptStatus,
        admin: Admin,
        client: ClientInfo,
        location: str,
        location_source: Optional[str],
        failure_reason: Optional[str] = None,
    ) -> LoginAttempt:
        return self.attempts.create(
            status,
            email=admin.email,
            admin_id=admin.id,
            device_id=client.device_id,
            device_info=client.user_agent,
            ip_address=client.ip_address,
            location=location,
            location_source=location_source,
            failure_reason=failure_reason,
        )

    # ==================== OTP VERIFICATION ====================

    async def verify_login_otp(
        self,
        login_attempt_id: Optional[int],
        code: Optional[str],
        client: ClientInfo,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not login_attempt_id or not code:
            raise ValidationError("login_attempt_id and otp are required")

        attempt = self.attempts.get(login_attempt_id)
        if attempt is None:
            raise NotFoundError("Login attempt not found")
        if attempt.status != _S.OTP_SENT.value:
            raise ValidationError("This login attempt is not awaiting OTP verification. Please log in again")

        email_matches = not email or normalize_email(email) == attempt.email
        if not email_matches or not self.otps.verify(attempt.email, code):
            self._fail_attempt(attempt.id, _S.OTP_FAILED, "invalid_otp")
            raise ExpiredError()

        admin = self.admins.find_active_admin_by_email(attempt.email)
        if admin is None:
            self._fail_attempt(attempt.id, _S.FAILED, "inactive")
            raise AuthenticationError()

        try:
            self.attempts.update_status(attempt.id, _S.OTP_VERIFIED, expected=_S.OTP_SENT)
        except InvalidTransitionError as e:
            # Swept or failed after the code was read; the code is spent either way
            logger.info(f"Login attempt {attempt.id} closed during OTP verification: {e}")
            raise ExpiredError()

        tokens = self.sessions.establish(
            admin,
            login_attempt_id=attempt.id,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return {
            "success": True,
            "message": "Login successful",
            "login_attempt_id": attempt.id,
            "admin": admin.to_public_dict(),
            **tokens.to_dict(),
        }

    def _fail_attempt(self, attempt_id: int, status: LoginAttemptStatus, reason: str) -> None:
        try:
            self.attempts.update_status(attempt_id, status, expected=_S.OTP_SENT, failure_reason=reason)
        except InvalidTransitionError as e:
            # Already moved on (e.g. swept); the caller still gets the generic failure
            logger.info(f"Login attempt {attempt_id} not marked {status.value}: {e}")

    # ==================== DEVICE APPROVAL ====================

    async def resolve_device_approval(
        self, login_attempt_id: Optional[int], approve: bool, approver: Admin
    ) -> Dict[str, Any]:
        """
        Approve or reject a pending new-device attempt. Repeating a decision
        on an already resolved attempt changes nothing and sends nothing.
        """
        if approver.role not in APPROVER_ROLES:
            raise AuthorizationError("Only super_admin, manager or dev can approve devices")
        if not login_attempt_id:
            raise ValidationError("login_attempt_id is required")

        attempt = self.attempts.get(login_attempt_id)
        if attempt is None:
            raise NotFoundError("Login attempt not found")
        if attempt.admin_id == approver.id:
            raise AuthorizationError("You cannot approve your own login attempt")

        if attempt.status in (_S.APPROVED.value, _S.REJECTED.value):
            return self._already_resolved(attempt)
        if attempt.status != _S.PENDING_APPROVAL.value:
            raise ValidationError("Login attempt is not awaiting approval")

        target = _S.APPROVED if approve else _S.REJECTED
        try:
            attempt = self.attempts.update_status(
                attempt.id,
                target,
                expected=_S.PENDING_APPROVAL,
                approved_by=approver.id,
                approved_by_role=approver.role,
            )
        except InvalidTransitionError:
            current = self.attempts.get(login_attempt_id)
            if current is not None and current.status in (_S.APPROVED.value, _S.REJECTED.value):
                return self._already_resolved(current)
            raise

        logger.info(f"Login attempt {attempt.id} {target.value} by admin {approver.id} ({approver.role})")

        if approve and attempt.email:
            result = await self.notifier.send_device_approved(attempt.email)
            if not result.get("success"):
                logger.error(f"Login attempt {attempt.id}: approval notice failed: {result.get('error')}")

        return {
            "success": True,
            "message": "Device approved. The user can now log in" if approve else "Device blocked",
            "login_attempt_id": attempt.id,
            "status": attempt.status,
            "already_resolved": False,
        }

    @staticmethod
    def _already_resolved(attempt: LoginAttempt) -> Dict[str, Any]:
        return {
            "success": True,
            "message": f"Login attempt already {attempt.status}",
            "login_attempt_id": attempt.id,
            "status": attempt.status,
            "already_resolved": True,
        }
