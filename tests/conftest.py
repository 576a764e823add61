"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["SERVICE_API_TOKEN"] = "test-service-token"

import pytest
from typing import Any, Dict, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from splitez.api.main import create_app
from splitez.api.dependencies import get_gamification_client
from splitez.infrastructure.database.models import Base
from splitez.infrastructure.database.repositories import AccountRepository
from splitez.infrastructure.database.session import get_db
from splitez.domain.models import Account


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingGamificationClient:
    """Stands in for the webhook client; keeps events instead of posting them"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def send_event(self, payload: Dict[str, Any]) -> None:
        self.events.append(payload)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gamification() -> RecordingGamificationClient:
    return RecordingGamificationClient()


@pytest.fixture
def client(db: Session, gamification: RecordingGamificationClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gamification_client] = lambda: gamification
    return TestClient(app)


@pytest.fixture
def accounts(db: Session) -> Dict[str, Account]:
    """Three registered users: a payer and two friends"""
    repo = AccountRepository(db)
    return {
        "payer": repo.upsert("u_payer", "Priya", "priya@example.com"),
        "m1": repo.upsert("u_m1", "Manoj", "manoj@example.com"),
        "m2": repo.upsert("u_m2", "Meera", "meera@example.com"),
    }


@pytest.fixture
def service_headers() -> Dict[str, str]:
    """Credentials of the identity and payment collaborators"""
    return {"X-Service-Token": os.environ["SERVICE_API_TOKEN"]}
