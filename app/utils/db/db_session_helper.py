"""Session scope helper for Celery tasks and scripts (outside FastAPI)."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from app.db import db_manager


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """Yield a session bound to the shared manager; commit or rollback on exit."""
    with db_manager.db_session() as session:
        yield session
