"""
Database seed - creates the super admin on first run.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from .base import get_now
from .models import Admin, AdminRole

logger = logging.getLogger(__name__)


def seed_super_admin(session: Session, settings) -> bool:
    """Create the super admin from SUPER_ADMIN_* settings if no active one exists."""
    from core.security import get_password_hash

    if not settings.super_admin_email or not settings.super_admin_password:
        logger.info("SUPER_ADMIN_EMAIL/PASSWORD not set, skipping super admin seed")
        return False

    existing = session.query(Admin).filter(
        Admin.role == AdminRole.SUPER_ADMIN.value,
        Admin.is_active == True
    ).first()
    if existing:
        logger.info("Super admin already exists")
        return False

    email = settings.super_admin_email.strip().lower()
    admin = session.query(Admin).filter(func.lower(Admin.email) == email).first()
    if admin is None:
        admin = Admin(email=email)
        session.add(admin)
    else:
        # Take over a pending or deactivated account holding the seed email
        logger.info(f"Promoting existing account {admin.id} to super admin")

    admin.password_hash = get_password_hash(settings.super_admin_password)
    admin.first_name = settings.super_admin_first_name
    admin.last_name = settings.super_admin_last_name
    admin.role = AdminRole.SUPER_ADMIN.value
    admin.is_active = True
    admin.verified_at = get_now()
    session.commit()
    logger.info(f"Super admin created ({email})")
    return True
