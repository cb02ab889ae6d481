import itertools
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from roster import models  # noqa: F401  registers table metadata
from roster.auth import create_session
from roster.database import get_session
from roster.models import User

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Factory for users with unique emails."""
    counter = itertools.count(1)

    def _make_user(display_name: str = None) -> User:
        n = next(counter)
        user = User(
            email=f"user{n}@example.com",
            password_hash="hashed_secret",
            display_name=display_name or f"User {n}"
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(session: Session):
    """Bearer headers for a real session belonging to the given user."""
    def _auth_headers(user: User) -> dict:
        user_session = create_session(session, user.id)
        return {"Authorization": f"Bearer {user_session.session_token}"}

    return _auth_headers
