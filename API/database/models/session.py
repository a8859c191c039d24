"""
Authenticated admin sessions, created once OTP verification succeeds.
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey

from ..base import BaseModel


class AdminSession(BaseModel):
    __tablename__ = 'admin_sessions'

    admin_id = Column(Integer, ForeignKey('admins.id', ondelete='CASCADE'), nullable=False, index=True)
    role = Column(String(50), nullable=False)
    login_attempt_id = Column(Integer, ForeignKey('login_attempts.id', ondelete='SET NULL'), nullable=True)
    token_hash = Column(String(64), nullable=True, index=True)
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
