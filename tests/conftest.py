import os

# Must be set before core.config is imported anywhere
os.environ.setdefault("ENV", "testing")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base, enable_sqlite_foreign_keys
from models.users import User
from services.token_service import TokenService
from utils.deps import get_db

# File-backed SQLite so concurrent sessions in other threads see the same data
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30}
)
enable_sqlite_foreign_keys(engine)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Opens extra sessions on the test database, e.g. one per thread."""
    return TestingSessionLocal


@pytest.fixture
def make_user(session):
    def create_test_user(email="tokentest@example.com", is_active=True):
        user = User(email=email, is_active=is_active)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return create_test_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def token_service():
    return TokenService()


@pytest.fixture
async def client(session: Session):
    """
    HTTP client against the app, with get_db pointed at the test session.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
