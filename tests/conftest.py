import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "whsec_test_mock"
os.environ["EXPIRY_SWEEP_ENABLED"] = "false"
os.environ["SETTLEMENT_CURRENCY"] = "INR"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.main import app
from app.models import PaymentMethod, Product, User, UserRole
from app.models.database import Base, get_db
from app.services.order_service import NewOrder, OrderItemRequest, OrderService

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(db: Session, email: str, role: UserRole) -> User:
    user = User(email=email, display_name=email.split("@")[0], role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def buyer(db: Session) -> User:
    return _create_user(db, "buyer@example.com", UserRole.BUYER)


@pytest.fixture
def buyer2(db: Session) -> User:
    return _create_user(db, "buyer2@example.com", UserRole.BUYER)


@pytest.fixture
def seller(db: Session) -> User:
    return _create_user(db, "seller@example.com", UserRole.SELLER)


@pytest.fixture
def admin(db: Session) -> User:
    return _create_user(db, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def products(db: Session) -> tuple[Product, Product]:
    """Two products in stock: 10 kettles and 20 mugs."""
    kettle = Product(name="Kettle", price=Decimal("799.00"), stock=10)
    mug = Product(name="Mug", price=Decimal("149.50"), stock=20)
    db.add_all([kettle, mug])
    db.commit()
    db.refresh(kettle)
    db.refresh(mug)
    return kettle, mug


def make_token(user: User, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
    payload = {"sub": str(user.id), "type": "access", "exp": datetime.now(timezone.utc) + expires_in}
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def buyer_headers(buyer: User) -> dict[str, str]:
    return headers_for(buyer)


@pytest.fixture
def seller_headers(seller: User) -> dict[str, str]:
    return headers_for(seller)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return headers_for(admin)


@pytest.fixture
def clock():
    """Mutable fixed clock; set ``clock.now`` to move time."""

    class FixedClock:
        now = NOW

        def __call__(self) -> datetime:
            return self.now

    return FixedClock()


@pytest.fixture
def service(db: Session, clock) -> OrderService:
    return OrderService(db, clock=clock)


@pytest.fixture
def make_order(service: OrderService, buyer: User):
    """Factory creating orders through the service for the default buyer."""

    def _make(
        method: PaymentMethod | str = PaymentMethod.COD,
        amount: str = "1000.00",
        placed_at: datetime | None = None,
        items: list[tuple[int, int]] | None = None,
        user: User | None = None,
    ):
        return service.create_order(
            NewOrder(
                user_id=(user or buyer).id,
                total_amount=Decimal(amount),
                shipping_address="12 MG Road, Bengaluru",
                payment_method=method,
                placed_at=placed_at,
                items=[OrderItemRequest(product_id=p, quantity=q) for p, q in (items or [])],
            )
        )

    return _make
