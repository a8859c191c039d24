"""
FastAPI dependencies for authentication, authorization and service wiring.

Repositories are built per request around the request's DB session; shared
collaborators (settings, notifier, geolocator, rate limiters) live on
app.state and are set up by app.create_app.
"""

from typing import Iterable, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from database.models import Admin, APPROVER_ROLES
from services.accounts import AccountService
from services.admins import AdminRepository
from services.device_trust import DeviceTrustEvaluator
from services.login_attempts import LoginAttemptLog
from services.login_flow import LoginService
from services.otp import OtpLedger
from services.sessions import SessionStore
from .exceptions import AuthorizationError
from .security import verify_access_token, SessionTokenData


# HTTP Bearer token scheme
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_settings(request: Request):
    return request.app.state.settings


# ==================== SERVICE WIRING ====================

def get_session_store(request: Request, db: Session = Depends(get_db)) -> SessionStore:
    settings = request.app.state.settings
    return SessionStore(db, settings.secret_key, settings.access_token_expire_minutes)


def get_otp_ledger(request: Request, db: Session = Depends(get_db)) -> OtpLedger:
    settings = request.app.state.settings
    return OtpLedger(db, settings.otp_ttl_minutes, secret_key=settings.secret_key)


def get_attempt_log(db: Session = Depends(get_db)) -> LoginAttemptLog:
    return LoginAttemptLog(db)


def get_login_service(
    request: Request,
    db: Session = Depends(get_db),
    otps: OtpLedger = Depends(get_otp_ledger),
    attempts: LoginAttemptLog = Depends(get_attempt_log),
    sessions: SessionStore = Depends(get_session_store),
) -> LoginService:
    state = request.app.state
    return LoginService(
        admins=AdminRepository(db),
        otps=otps,
        attempts=attempts,
        device_trust=DeviceTrustEvaluator(attempts),
        sessions=sessions,
        notifier=state.notifier,
        geolocator=state.geolocator,
        otp_ttl_minutes=state.settings.otp_ttl_minutes,
    )


def get_account_service(
    request: Request,
    db: Session = Depends(get_db),
    otps: OtpLedger = Depends(get_otp_ledger),
    sessions: SessionStore = Depends(get_session_store),
) -> AccountService:
    state = request.app.state
    return AccountService(
        admins=AdminRepository(db),
        otps=otps,
        sessions=sessions,
        notifier=state.notifier,
        otp_ttl_minutes=state.settings.otp_ttl_minutes,
    )


# ==================== ADMIN AUTH ====================

def _resolve_admin(request: Request, token: str, db: Session) -> Optional[Admin]:
    settings = request.app.state.settings
    payload = verify_access_token(token, settings.secret_key)
    if payload is None:
        return None

    try:
        data = SessionTokenData.from_dict(payload)
    except (TypeError, ValueError):
        return None

    store = SessionStore(db, settings.secret_key, settings.access_token_expire_minutes)
    if store.get_active(data.session_id, data.admin_id) is None:
        return None

    admin = AdminRepository(db).get(data.admin_id)
    if admin is None or not admin.is_active:
        return None

    request.state.session_id = data.session_id
    return admin


async def get_current_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Admin:
    """
    Get current authenticated admin.
    The token must name an active, unexpired session of an active admin.
    """
    admin = _resolve_admin(request, credentials.credentials, db)
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin


async def get_optional_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db)
) -> Optional[Admin]:
    """Get current admin if authenticated, None otherwise."""
    if credentials is None:
        return None
    return _resolve_admin(request, credentials.credentials, db)


# ==================== ROLE CHECKS ====================

class RoleChecker:
    """
    Role checker dependency.

    Usage:
        @router.get("/pending-login-attempts", dependencies=[Depends(RoleChecker(APPROVER_ROLES))])
    """

    def __init__(self, allowed_roles: Iterable[str], message: Optional[str] = None):
        self.allowed_roles = frozenset(allowed_roles)
        self.message = message

    async def __call__(
        self,
        current_admin: Admin = Depends(get_current_admin)
    ) -> Admin:
        if current_admin.role not in self.allowed_roles:
            raise AuthorizationError(self.message)
        return current_admin


require_approver = RoleChecker(
    APPROVER_ROLES,
    message="Only super_admin, manager or dev can perform this action",
)
