"""
Login attempt log - one row per login submission, tracking where that
submission is in the device-approval / OTP flow.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, String, Integer, Text, ForeignKey, Index

from ..base import BaseModel


class LoginAttemptStatus(str, PyEnum):
    PENDING_APPROVAL = "pending_approval"
    PENDING_OTP = "pending_otp"
    OTP_SENT = "otp_sent"
    OTP_FAILED = "otp_failed"
    OTP_VERIFIED = "otp_verified"
    APPROVED = "approved"
    REJECTED = "rejected"
    FAILED = "failed"


S = LoginAttemptStatus

# States a new attempt may start in
INITIAL_STATES = frozenset({S.FAILED, S.PENDING_APPROVAL, S.PENDING_OTP})

# Allowed edges; anything missing here is terminal
TRANSITIONS = {
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.REJECTED, S.FAILED}),
    S.PENDING_OTP: frozenset({S.OTP_SENT, S.FAILED}),
    S.OTP_SENT: frozenset({S.OTP_VERIFIED, S.OTP_FAILED, S.FAILED}),
}

# Non-terminal states the expiry sweeper force-fails
STALE_CANDIDATES = frozenset({S.PENDING_APPROVAL, S.PENDING_OTP, S.OTP_SENT})

# A prior attempt in one of these states makes its device trusted
TRUSTING_STATES = frozenset({S.APPROVED, S.OTP_VERIFIED})


def can_transition(current: LoginAttemptStatus, target: LoginAttemptStatus) -> bool:
    return target in TRANSITIONS.get(LoginAttemptStatus(current), frozenset())


class LoginAttempt(BaseModel):
    """Every login submission, including failed-credential ones."""

    __tablename__ = 'login_attempts'

    admin_id = Column(Integer, ForeignKey('admins.id', ondelete='SET NULL'), nullable=True, index=True)
    email = Column(String(255), nullable=True, index=True)

    # Client context
    device_id = Column(String(255), nullable=True)
    device_info = Column(Text, nullable=True)
    ip_address = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    location_source = Column(String(20), nullable=True)  # gps | ip | None

    status = Column(String(30), nullable=False, index=True)
    failure_reason = Column(String(100), nullable=True)

    # Set when an approver resolves the attempt
    approved_by = Column(Integer, ForeignKey('admins.id', ondelete='SET NULL'), nullable=True)
    approved_by_role = Column(String(50), nullable=True)

    __table_args__ = (
        Index('ix_login_attempts_admin_device', 'admin_id', 'device_id', 'status'),
    )

    def to_public_dict(self) -> dict:
        data = self.to_dict()
        data["login_attempt_id"] = self.id
        return data
