"""
Admin model - operator accounts for the station back office.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, String, Boolean, DateTime, Index

from ..base import BaseModel


class AdminRole(str, PyEnum):
    """Built-in roles. Staff roles defined by the business are free-form strings."""
    SUPER_ADMIN = "super_admin"
    MANAGER = "manager"
    DEV = "dev"


# Roles that receive device-approval requests and routed OTPs
APPROVER_ROLES = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.MANAGER.value, AdminRole.DEV.value})

# Roles that never wait for device approval
APPROVAL_EXEMPT_ROLES = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.DEV.value})

# Columns that never leave the server
CREDENTIAL_FIELDS = frozenset({"password_hash"})


class Admin(BaseModel):
    """
    Back-office operator.

    Only one active super_admin may exist; registration enforces it.
    Verified accounts are deactivated, never deleted. An unverified
    registration can be registered again, which replaces it.
    """

    __tablename__ = 'admins'

    # Credentials
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Personal info
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)

    # Access
    role = Column(String(50), nullable=False, default="staff")
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    # Set once the registration code is confirmed; NULL means still pending
    verified_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_admins_role_active', 'role', 'is_active'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_approver(self) -> bool:
        return self.role in APPROVER_ROLES

    def to_public_dict(self) -> dict:
        """Admin record without credential fields."""
        return {k: v for k, v in self.to_dict().items() if k not in CREDENTIAL_FIELDS}

    def __repr__(self):
        return f"<Admin(id={self.id}, email='{self.email}', role='{self.role}')>"
