import os
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set required environment variables for testing
os.environ["API_V1_STR"] = "/api/v1"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["RECONCILE_ON_STARTUP"] = "false"

from homekeeper.main import app
from homekeeper.database import get_db
from homekeeper.dependencies import get_token_manager
from homekeeper.models.base import Base
from homekeeper.schemas.user import UserCreate
from homekeeper.services.membership_service import MembershipService
from homekeeper.services.token_service import SessionTokenManager, TokenSettings
from homekeeper.services.userService import UserService

TEST_DATABASE_URL = "sqlite:///:memory:"
API = "/api/v1"
PASSWORD = "testpass123"

ACCESS_TTL_MS = 10 * 60 * 1000
REFRESH_TTL_MS = 7 * 24 * 60 * 60 * 1000


@pytest.fixture(scope="session")
def engine():
    """Create a test database engine for the entire test session."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so savepoints nest inside the test transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine):
    """
    Create a new database session for each test.

    Service commits and rollbacks work on a savepoint inside the outer
    transaction, which is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=connection,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSessionLocal()

    def override_get_db():
        try:
            yield session
        finally:
            pass  # Don't close here, we'll handle it after the test

    app.dependency_overrides[get_db] = override_get_db
    yield session

    # Cleanup
    session.close()
    transaction.rollback()
    connection.close()
    app.dependency_overrides.clear()


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_settings():
    return TokenSettings(
        secret_key=os.environ["SECRET_KEY"],
        algorithm="HS256",
        access_ttl_ms=ACCESS_TTL_MS,
        refresh_ttl_ms=REFRESH_TTL_MS,
    )


@pytest.fixture
def token_manager(token_settings, clock):
    return SessionTokenManager(token_settings, clock=clock)


@pytest.fixture
def client(db_session, token_manager):
    """Create a FastAPI TestClient with database session and token clock overrides."""
    app.dependency_overrides[get_token_manager] = lambda: token_manager
    with TestClient(app) as c:
        yield c


class ApiClient:
    """TestClient wrapper that prefixes the API path and echoes the CSRF cookie."""

    def __init__(self, client: TestClient):
        self.client = client

    def csrf_headers(self) -> dict:
        return {"X-CSRF-Token": self.client.cookies.get("csrfToken") or ""}

    def get(self, path: str, **kwargs):
        return self.client.get(f"{API}{path}", **kwargs)

    def post(self, path: str, **kwargs):
        kwargs.setdefault("headers", self.csrf_headers())
        return self.client.post(f"{API}{path}", **kwargs)

    def put(self, path: str, **kwargs):
        kwargs.setdefault("headers", self.csrf_headers())
        return self.client.put(f"{API}{path}", **kwargs)

    def delete(self, path: str, **kwargs):
        kwargs.setdefault("headers", self.csrf_headers())
        return self.client.delete(f"{API}{path}", **kwargs)

    def login(self, email: str, password: str = PASSWORD):
        """Fetch an anti-forgery token, then sign in."""
        self.get("/auth/csrf-token")
        return self.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def api(client):
    return ApiClient(client)


def make_user(db_session, email: str, name: str):
    return UserService(db_session).create_user(
        UserCreate(email=email, name=name, password=PASSWORD)
    )


@pytest.fixture
def owner(db_session):
    return make_user(db_session, "owner@example.com", "Olive Owner")


@pytest.fixture
def member_user(db_session):
    return make_user(db_session, "member@example.com", "Max Member")


@pytest.fixture
def outsider(db_session):
    return make_user(db_session, "outsider@example.com", "Otto Outsider")


@pytest.fixture
def household(db_session, owner):
    return MembershipService(db_session).create_household("Maple House", owner.id, "Our home")
