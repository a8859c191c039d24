"""
Session store: the authenticated identity created after OTP verification.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.security import SessionTokenData, create_access_token, hash_token
from database.base import get_now
from database.models import Admin, AdminSession

logger = logging.getLogger(__name__)


class SessionTokens:
    def __init__(self, access_token: str, expires_in: int, session_id: int):
        self.access_token = access_token
        self.token_type = "bearer"
        self.expires_in = expires_in
        self.session_id = session_id

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


class SessionStore:

    def __init__(
        self,
        db: Session,
        secret_key: str,
        expire_minutes: int,
        clock: Callable[[], datetime] = get_now,
    ):
        self.db = db
        self.secret_key = secret_key
        self.expire_minutes = expire_minutes
        self.clock = clock

    def establish(
        self,
        admin: Admin,
        login_attempt_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SessionTokens:
        """Bind a new session to the admin's id and role and issue its token."""
        now = self.clock()
        session = AdminSession(
            admin_id=admin.id,
            role=admin.role,
            login_attempt_id=login_attempt_id,
            ip_address=ip_address,
            user_agent=user_agent,
            expires_at=now + timedelta(minutes=self.expire_minutes),
            is_active=True,
        )
        self.db.add(session)
        self.db.flush()

        token = create_access_token(
            SessionTokenData(admin.id, admin.role, session.id).to_dict(),
            expires_delta=timedelta(minutes=self.expire_minutes),
            secret_key=self.secret_key,
        )
        session.token_hash = hash_token(token)
        admin.last_login = now
        self.db.commit()

        logger.info(f"Session {session.id} established for admin {admin.id} ({admin.role})")
        return SessionTokens(token, self.expire_minutes * 60, session.id)

    def get_active(self, session_id: int, admin_id: int) -> Optional[AdminSession]:
        return self.db.query(AdminSession).filter(
            AdminSession.id == session_id,
            AdminSession.admin_id == admin_id,
            AdminSession.is_active == True,
            AdminSession.expires_at > self.clock(),
        ).first()

    def invalidate_all(self, admin_id: int) -> int:
        changed = self.db.query(AdminSession).filter(
            AdminSession.admin_id == admin_id,
            AdminSession.is_active == True
        ).update({"is_active": False}, synchronize_session=False)
        self.db.commit()
        return changed
