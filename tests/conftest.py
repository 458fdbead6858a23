"""
Pytest configuration and shared test fixtures.

Every test gets a fresh in-memory SQLite database with the full schema,
plus factories for users, vendors, products and orders. API tests talk
to the FastAPI app through httpx with the database dependency pointed at
the test engine and real bearer tokens for authentication.
"""

import os

os.environ["APP_ENVIRONMENT"] = "test"
os.environ["APP_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-for-expresskart-order-suite")

from decimal import Decimal
from typing import Any, AsyncGenerator, Optional
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from expresskart.core.security import create_access_token
from expresskart.database.connection import (
    create_engine,
    create_session_factory,
    get_db,
    init_models,
)
from expresskart.database.models import (
    Order,
    Product,
    User,
    UserRole,
    Vendor,
    VendorStatus,
)
from expresskart.main import app
from expresskart.services.orders.enums import OrderStatus, PaymentMethod
from expresskart.services.orders.events import OrderEventDispatcher
from expresskart.services.orders.service import OrderService


DEFAULT_ADDRESS = {
    "line1": "12 MG Road",
    "line2": "Near City Mall",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
    "country": "IN",
}


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created."""
    test_engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for arranging data and calling services directly.

    Factories commit their rows, so data is visible to sessions opened
    by the API client as well.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher() -> OrderEventDispatcher:
    """Dispatcher without default handlers, so tests can register their own."""
    return OrderEventDispatcher(include_default_handlers=False)


@pytest.fixture
def order_service(
    db_session: AsyncSession, dispatcher: OrderEventDispatcher
) -> OrderService:
    return OrderService(db_session, dispatcher=dispatcher)


# ============================================================================
# Data Factories
# ============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating a committed user."""

    async def _make_user(
        role: UserRole = UserRole.CUSTOMER,
        name: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        suffix = uuid4().hex[:8]
        user = User(
            name=name or f"{role.value.title()} {suffix}",
            email=f"{role.value}-{suffix}@example.com",
            phone="+919800000000",
            role=role,
            is_active=is_active,
            vendor_profile=None,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_vendor(db_session: AsyncSession, make_user):
    """Factory creating a vendor user together with its vendor profile."""

    async def _make_vendor(
        status: VendorStatus = VendorStatus.APPROVED,
        business_name: Optional[str] = None,
    ) -> User:
        owner = await make_user(UserRole.VENDOR)
        vendor = Vendor(
            owner_user_id=owner.id,
            business_name=business_name or f"Shop of {owner.name}",
            status=status,
        )
        owner.vendor_profile = vendor
        db_session.add(vendor)
        await db_session.commit()
        return owner

    return _make_vendor


@pytest.fixture
def make_product(db_session: AsyncSession):
    """Factory creating a committed product for a vendor user."""

    async def _make_product(
        vendor_user: User,
        price: Decimal = Decimal("250.00"),
        title: Optional[str] = None,
        is_active: bool = True,
    ) -> Product:
        product = Product(
            vendor_id=vendor_user.vendor_profile.id,
            title=title or f"Product {uuid4().hex[:6]}",
            price=price,
            is_active=is_active,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return _make_product


@pytest.fixture
def make_order(db_session: AsyncSession, order_service: OrderService, make_product):
    """
    Factory placing an order through checkout.

    A ``status`` other than pending is applied directly to the row, which
    lets tests start from any point of the lifecycle.
    """

    async def _make_order(
        customer: User,
        vendor_user: User,
        status: OrderStatus = OrderStatus.PENDING,
        quantity: int = 2,
        price: Decimal = Decimal("250.00"),
    ) -> Order:
        product = await make_product(vendor_user, price=price)
        order = await order_service.create_order(
            actor=customer,
            items=[{"product_id": product.id, "quantity": quantity}],
            delivery_address=dict(DEFAULT_ADDRESS),
            payment_method=PaymentMethod.COD,
        )

        if status != OrderStatus.PENDING:
            await db_session.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            await db_session.commit()
            order = await order_service.repository.get_order_by_id(
                order.id, refresh=True
            )

        return order

    return _make_order


@pytest.fixture
async def customer(make_user) -> User:
    return await make_user(UserRole.CUSTOMER, name="Asha Customer")


@pytest.fixture
async def other_customer(make_user) -> User:
    return await make_user(UserRole.CUSTOMER, name="Ravi Customer")


@pytest.fixture
async def vendor_user(make_vendor) -> User:
    return await make_vendor(business_name="Fresh Mart")


@pytest.fixture
async def other_vendor_user(make_vendor) -> User:
    return await make_vendor(business_name="Corner Store")


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN, name="Site Admin")


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, role=user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app bound to the test database.

    Each request gets its own session, committed on success and rolled
    back on error, like the production dependency.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload():
    """Build a checkout request body for the given products."""

    def _order_payload(product_ids: list[Any], **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": [{"product_id": str(pid), "quantity": 1} for pid in product_ids],
            "delivery_address": dict(DEFAULT_ADDRESS),
            "payment_method": "cod",
        }
        payload.update(overrides)
        return payload

    return _order_payload
