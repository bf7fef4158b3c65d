"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Callable, Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from charity_gateway.api.dependencies import get_auth_client, get_notification_dispatcher
from charity_gateway.api.main import create_app
from charity_gateway.domain.exceptions import AuthenticationError
from charity_gateway.infrastructure.clients.notifications import NotificationClient
from charity_gateway.infrastructure.database.models import AdminUserRole, Base, Case, Contribution, User
from charity_gateway.infrastructure.database.session import build_engine, get_db
from charity_gateway.services.batch import BatchProgressRegistry
from charity_gateway.services.notifications import NotificationDispatcher


# In-memory test database (one shared connection, savepoints enabled)
engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

DONOR_ID = "donor-alice"
OTHER_DONOR_ID = "donor-omar"
ADMIN_ID = "admin-1"
CASE_ID = "case-water"
OTHER_CASE_ID = "case-school"
DRAFT_CASE_ID = "case-draft"


def auth_header(user_id: str) -> dict:
    return {"Authorization": f"Bearer user-{user_id}"}


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
def seeded(db: Session) -> Session:
    """Two donors, one admin, two published cases and a draft case"""
    db.add_all(
        [
            User(id=DONOR_ID, email="alice@example.com", first_name="Alice", last_name="Smith"),
            User(id=OTHER_DONOR_ID, email="omar@example.com", first_name="Omar", last_name="Haddad"),
            User(id=ADMIN_ID, email="admin@example.com", first_name="Mona", last_name="Admin"),
            AdminUserRole(user_id=ADMIN_ID, role_name="admin", is_active=True),
            Case(id=CASE_ID, title_en="Clean Water", title_ar="مياه نظيفة", target_amount=Decimal("10000"),
                 current_amount=Decimal("0"), status="published"),
            Case(id=OTHER_CASE_ID, title_en="School Supplies", title_ar="لوازم مدرسية",
                 target_amount=Decimal("5000"), current_amount=Decimal("0"), status="published"),
            Case(id=DRAFT_CASE_ID, title_en="Draft Appeal", target_amount=Decimal("1000"),
                 current_amount=Decimal("0"), status="draft"),
        ]
    )
    db.commit()
    return db


@pytest.fixture
def make_contribution(seeded: Session) -> Callable[..., Contribution]:
    """Factory for pending contributions with explicit timestamps"""
    counter = {"n": 0}

    def _make(
        amount: str = "100",
        case_id: str = CASE_ID,
        donor_id: str = DONOR_ID,
        payment_method: str = "bank_transfer",
        status: str = "pending",
        created_at: datetime | None = None,
        contribution_id: str | None = None,
    ) -> Contribution:
        counter["n"] += 1
        contribution = Contribution(
            id=contribution_id or f"contrib-{counter['n']:03d}",
            amount=Decimal(amount),
            case_id=case_id,
            donor_id=donor_id,
            payment_method=payment_method,
            status=status,
            created_at=created_at or datetime(2024, 3, 1, 12, 0),
        )
        seeded.add(contribution)
        seeded.commit()
        return contribution

    return _make


@pytest.fixture
def notification_client() -> AsyncMock:
    """Notification API stand-in that accepts every delivery"""
    client = AsyncMock(spec=NotificationClient)
    client.send.return_value = True
    return client


@pytest.fixture
def dispatcher(notification_client: AsyncMock) -> NotificationDispatcher:
    return NotificationDispatcher(notification_client)


@pytest.fixture
def registry() -> BatchProgressRegistry:
    return BatchProgressRegistry(retention=10)


@pytest.fixture
def auth_client() -> AsyncMock:
    """Identity provider stand-in: token "user-<id>" resolves to <id>"""

    async def resolve(token: str) -> str:
        if not token.startswith("user-"):
            raise AuthenticationError("invalid token")
        return token[len("user-"):]

    client = AsyncMock()
    client.get_user_id.side_effect = resolve
    return client


@pytest.fixture
def client(seeded: Session, dispatcher: NotificationDispatcher, auth_client: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield seeded
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_client] = lambda: auth_client
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    return TestClient(app)
