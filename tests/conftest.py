import os
from datetime import datetime
from typing import Optional

# Point the module-level app at SQLite before anything imports it.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, create_db_engine, create_session_factory  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models import User  # noqa: E402

# In-memory SQLite database shared across connections via StaticPool.
TEST_DATABASE_URL = "sqlite://"

engine_test = create_db_engine(TEST_DATABASE_URL)

TestingSessionLocal = create_session_factory(engine_test)


@pytest.fixture()
def db_session():
    """Provide a fresh test database session for each test.

    The schema is dropped and recreated for every test function,
    ensuring complete isolation between tests.
    """
    Base.metadata.drop_all(bind=engine_test)
    Base.metadata.create_all(bind=engine_test)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session):
    """TestClient for an app wired to the in-memory test engine.

    Requests go through the real `get_db`, one session per request from the
    app's session factory, all on the same StaticPool connection as
    `db_session`.
    """
    app = create_app(engine=engine_test)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def user_factory(db_session):
    """Factory fixture that creates users directly in the test database.

    Useful when a test needs pre-existing data, or fixed timestamps,
    without going through the HTTP API.
    """

    def _create_user(
        email: str,
        name: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> User:
        user = User(email=email, name=name)
        if created_at is not None:
            user.created_at = created_at
            user.updated_at = created_at
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture()
def count_users(db_session):
    def _count() -> int:
        db_session.expire_all()
        return db_session.query(User).count()

    return _count
