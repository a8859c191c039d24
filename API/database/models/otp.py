"""
One-time codes sent during login, registration and password reset.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Index

from ..base import BaseModel


class OtpPurpose(str, PyEnum):
    LOGIN = "login"
    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"


class OtpCode(BaseModel):
    """
    Several live codes per email may coexist; each is consumed
    (deleted) individually on successful verification.
    """

    __tablename__ = 'otp_codes'

    email = Column(String(255), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)
    purpose = Column(String(20), nullable=False, default=OtpPurpose.LOGIN.value)
    expires_at = Column(DateTime, nullable=False, index=True)

    __table_args__ = (
        Index('ix_otp_codes_lookup', 'email', 'code_hash', 'purpose'),
    )
