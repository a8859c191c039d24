"""
Login attempt log.

Every status change goes through update_status(), which checks the edge
against the login state diagram and writes it as a compare-and-set on the
current status, so an approval and a sweeper timeout racing on the same
row cannot both win.
"""

import logging
from datetime import datetime, time
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import InvalidTransitionError, TransientInfraError
from database.base import get_now
from database.models import LoginAttempt, LoginAttemptStatus
from database.models.login_attempt import (
    INITIAL_STATES,
    STALE_CANDIDATES,
    TRUSTING_STATES,
    can_transition,
)

logger = logging.getLogger(__name__)

_S = LoginAttemptStatus


class LoginAttemptLog:

    def __init__(self, db: Session, clock: Callable[[], datetime] = get_now):
        self.db = db
        self.clock = clock

    def create(
        self,
        status: LoginAttemptStatus,
        email: Optional[str] = None,
        admin_id: Optional[int] = None,
        device_id: Optional[str] = None,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
        location: Optional[str] = None,
        location_source: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> LoginAttempt:
        status = _S(status)
        if status not in INITIAL_STATES:
            raise InvalidTransitionError(f"A login attempt cannot start as {status.value}")

        attempt = LoginAttempt(
            admin_id=admin_id,
            email=email,
            device_id=device_id or None,
            device_info=device_info,
            ip_address=ip_address,
            location=location,
            location_source=location_source,
            status=status.value,
            failure_reason=failure_reason,
        )
        try:
            self.db.add(attempt)
            self.db.commit()
            self.db.refresh(attempt)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Login attempt insert failed for {email}: {e}")
            raise TransientInfraError("Could not record login attempt") from e

        logger.info(f"Login attempt {attempt.id} created: email={email} status={status.value}")
        return attempt

    def get(self, attempt_id: int) -> Optional[LoginAttempt]:
        # Re-read the row: another request may have moved it since this session loaded it
        return self.db.query(LoginAttempt).populate_existing().filter(
            LoginAttempt.id == attempt_id
        ).first()

    def update_status(
        self,
        attempt_id: int,
        status: LoginAttemptStatus,
        expected: Optional[LoginAttemptStatus] = None,
        **extra,
    ) -> LoginAttempt:
        """
        Move an attempt to `status`.

        Raises InvalidTransitionError when the edge is not allowed, when the
        row is not in `expected`, or when another writer changed it first.
        """
        target = _S(status)
        attempt = self.get(attempt_id)
        if attempt is None:
            raise InvalidTransitionError(f"Login attempt {attempt_id} does not exist")

        current = _S(attempt.status)
        if expected is not None and current != _S(expected):
            raise InvalidTransitionError(
                f"Login attempt {attempt_id} is {current.value}, expected {_S(expected).value}"
            )
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Login attempt {attempt_id} cannot go from {current.value} to {target.value}"
            )

        values = {"status": target.value, "updated_at": self.clock(), **extra}
        try:
            changed = self.db.query(LoginAttempt).filter(
                LoginAttempt.id == attempt_id,
                LoginAttempt.status == current.value,
            ).update(values, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Login attempt {attempt_id} update failed: {e}")
            raise TransientInfraError("Could not update login attempt") from e

        if changed != 1:
            raise InvalidTransitionError(f"Login attempt {attempt_id} was changed concurrently")

        self.db.refresh(attempt)
        logger.info(f"Login attempt {attempt_id}: {current.value} -> {target.value}")
        return attempt

    def find_trusted_attempt(self, admin_id: int, device_id: Optional[str]) -> bool:
        if not device_id:
            return False
        return self.db.query(LoginAttempt.id).filter(
            LoginAttempt.admin_id == admin_id,
            LoginAttempt.device_id == device_id,
            LoginAttempt.status.in_([s.value for s in TRUSTING_STATES]),
        ).first() is not None

    def list_pending(self, admin_id: Optional[int] = None) -> List[LoginAttempt]:
        query = self.db.query(LoginAttempt).filter(
            LoginAttempt.status.in_([s.value for s in STALE_CANDIDATES])
        )
        if admin_id is not None:
            query = query.filter(LoginAttempt.admin_id == admin_id)
        return query.order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc()).all()

    def sweep_stale(self, older_than: datetime) -> int:
        """Fail every non-terminal attempt created before `older_than`."""
        try:
            affected = self.db.query(LoginAttempt).filter(
                LoginAttempt.status.in_([s.value for s in STALE_CANDIDATES]),
                LoginAttempt.created_at < older_than,
            ).update(
                {
                    "status": _S.FAILED.value,
                    "failure_reason": "expired",
                    "updated_at": self.clock(),
                },
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return affected

    def list_today(self) -> List[LoginAttempt]:
        start = datetime.combine(self.clock().date(), time.min)
        return self.db.query(LoginAttempt).filter(
            LoginAttempt.created_at >= start
        ).order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc()).all()

    def list_by_status(
        self,
        statuses: Iterable[LoginAttemptStatus],
        offset: int = 0,
        limit: int = 5,
    ) -> List[LoginAttempt]:
        return self.db.query(LoginAttempt).filter(
            LoginAttempt.status.in_([_S(s).value for s in statuses])
        ).order_by(
            LoginAttempt.created_at.desc(), LoginAttempt.id.desc()
        ).offset(offset).limit(limit).all()

    def count_by_status(self, status: LoginAttemptStatus) -> int:
        return self.db.query(func.count(LoginAttempt.id)).filter(
            LoginAttempt.status == _S(status).value
        ).scalar() or 0

    def delete(self, attempt_id: int) -> bool:
        deleted = self.db.query(LoginAttempt).filter(
            LoginAttempt.id == attempt_id
        ).delete(synchronize_session=False)
        self.db.commit()
        if deleted:
            logger.info(f"Login attempt {attempt_id} purged")
        return deleted == 1
