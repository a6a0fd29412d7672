import pytest
from fakeredis import FakeRedis
from fastapi.testclient import TestClient
from rq import Queue
from sqlmodel import SQLModel, Session, create_engine

from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.core.queues import EmailDispatcher, get_email_dispatcher
from backend.app.core.security import get_password_hash
from backend.app.main import create_app
from backend.app.models import User
from backend.app.services.auth_service import AuthService

TEST_PASSWORD = "TestPassword123!"


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Keep bcrypt cheap in tests."""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so worker threads can share the database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a database session for testing."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def email_queue():
    return Queue("email", connection=FakeRedis())


@pytest.fixture
def email_dispatcher(email_queue):
    return EmailDispatcher(queue=email_queue, frontend_url="http://localhost:3000")


@pytest.fixture
def auth_service(db_session, email_dispatcher):
    return AuthService(db_session, email_dispatcher)


@pytest.fixture
def client(engine, email_dispatcher):
    """API client wired to the test database and fake email queue."""
    app = create_app()

    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_dispatcher] = lambda: email_dispatcher
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    """Insert a user directly into the store."""

    def _make_user(
        email: str = "user@example.com",
        password: str = TEST_PASSWORD,
        name: str = "Test User",
        **fields,
    ) -> User:
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user
