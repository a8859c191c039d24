"""
Database connection management.

One DatabaseConnection is created per application (see app.create_app) and
kept on app.state. Request handlers receive a session through get_db.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .base import Base

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        engine_kwargs = {"echo": echo, "future": True}

        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url:
                # Share one in-memory database across threads
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_tables(self) -> None:
        # Import models so they register with the metadata
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_session_direct(self) -> Session:
        """Bare session; the caller must close it."""
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def init_db(database: DatabaseConnection) -> None:
    database.create_tables()
    logger.info(f"Database tables ensured ({database.engine.url.drivername})")


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: request-scoped session."""
    database: DatabaseConnection = request.app.state.database
    session = database.get_session_direct()
    try:
        yield session
    finally:
        session.close()
