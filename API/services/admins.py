"""
Credential store: admin account lookups used by the login flow.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import Admin, AdminRole, APPROVER_ROLES


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class AdminRepository:
    """Queries over the admins table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, admin_id: int) -> Optional[Admin]:
        return self.db.query(Admin).filter(Admin.id == admin_id).first()

    def find_by_email(self, email: str) -> Optional[Admin]:
        """Any account with this email, active or not."""
        return self.db.query(Admin).filter(
            func.lower(Admin.email) == normalize_email(email)
        ).first()

    def find_active_admin_by_email(self, email: str) -> Optional[Admin]:
        return self.db.query(Admin).filter(
            func.lower(Admin.email) == normalize_email(email),
            Admin.is_active == True
        ).first()

    def find_admin_role(self, admin_id: int) -> Optional[str]:
        row = self.db.query(Admin.role).filter(Admin.id == admin_id).first()
        return row[0] if row else None

    def list_approvers(self, exclude_admin_id: Optional[int] = None) -> List[Admin]:
        """Active super_admin / manager / dev accounts."""
        query = self.db.query(Admin).filter(
            Admin.role.in_(APPROVER_ROLES),
            Admin.is_active == True
        )
        if exclude_admin_id is not None:
            query = query.filter(Admin.id != exclude_admin_id)
        return query.order_by(Admin.id).all()

    def super_admin_exists(self) -> bool:
        """Only an active super_admin counts; pending registrations do not."""
        return self.db.query(Admin.id).filter(
            Admin.role == AdminRole.SUPER_ADMIN.value,
            Admin.is_active == True
        ).first() is not None

    def add(self, admin: Admin) -> Admin:
        self.db.add(admin)
        self.db.commit()
        self.db.refresh(admin)
        return admin

    def save(self, admin: Admin) -> Admin:
        self.db.commit()
        self.db.refresh(admin)
        return admin
