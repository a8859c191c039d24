"""
Database package for the station admin API.

Usage:
    from database import DatabaseConnection, get_db, init_db
    from database.models import Admin, LoginAttempt, OtpCode
"""

from .base import Base, BaseModel, TimestampMixin, get_now
from .connection import (
    DatabaseConnection,
    get_db,
    init_db,
)

# Import all models to ensure they are registered with SQLAlchemy
from .models import *


__all__ = [
    # Base
    'Base',
    'BaseModel',
    'TimestampMixin',
    'get_now',

    # Connection
    'DatabaseConnection',
    'get_db',
    'init_db',
]
