"""
Database engine, session factory and FastAPI dependency.

Engine creation is lazy so importing models never opens a connection.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

Base = declarative_base()

# JSONB on PostgreSQL, generic JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _engine_kwargs(url: str) -> dict:
    settings = get_settings()
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite://"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "connect_args": {"application_name": settings.db_app_name},
    }


class DatabaseManager:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self._database_url = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            url = self._database_url or get_settings().database_url
            self._engine = create_engine(url, **_engine_kwargs(url))
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine, autocommit=False, autoflush=False
            )
        return self._session_factory

    def bind(self, engine: Engine) -> None:
        """Point the manager at an existing engine (used by tests)."""
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False
        )

    @contextmanager
    def db_session(self) -> Generator[Session, None, None]:
        """Session scope: commit on success, rollback on error, always close."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    db = db_manager.session_factory()
    try:
        yield db
    finally:
        db.close()
