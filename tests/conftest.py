import os

from cryptography.fernet import Fernet

# Settings are read at import time by the Celery app; configure before importing app
os.environ["ENV"] = "test"
os.environ.setdefault("FERNET_KEY", Fernet.generate_key().decode())
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, db_manager  # noqa: E402

pytest_plugins = [
    "tests.fixtures.inbox_fixtures",
    "tests.fixtures.redis_fixtures",
]


@pytest.fixture(scope="session")
def engine():
    engine = db_manager.engine
    if engine.dialect.name == "sqlite":
        # pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs behave
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(engine, monkeypatch):
    """
    One session per test, shared with code that opens its own session scope
    (Celery tasks). Tables are emptied afterwards.
    """
    session = db_manager.session_factory()
    monkeypatch.setattr(db_manager, "_session_factory", lambda: session)
    # Task session scopes close on exit; keep the test's objects attached
    monkeypatch.setattr(session, "close", lambda: None)
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    Session.close(session)


@pytest.fixture(scope="session")
def faker():
    return Faker()


@pytest.fixture(scope="function")
def client(db):
    """API client sharing the test session."""
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
