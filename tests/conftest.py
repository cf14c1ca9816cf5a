"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database engine / session factory (async SQLite)
- HTTP test client bound to the test database
- Customer accounts and push envelopes
- In-memory Redis replacement
"""
import base64
import json
from typing import Any, AsyncGenerator
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.database import Base, get_session_factory
from app.db.models.customer_account import CustomerAccount
from app.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# הערה: לא מגדירים event_loop fixture מותאם אישית כי pytest-asyncio 0.23+
# מטפל בזה אוטומטית עם asyncio_mode=auto ו-asyncio_default_fixture_loop_scope=function


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (what the pipeline receives)"""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def test_client(session_factory):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def customer_factory(db_session: AsyncSession):
    """Factory for creating customer accounts"""
    async def _create_customer(
        customer_id: int = 1,
        credit: int = 0,
        limit: int = 1000,
    ) -> CustomerAccount:
        customer = CustomerAccount(customer_id=customer_id, credit=credit, limit=limit)
        db_session.add(customer)
        await db_session.commit()
        await db_session.refresh(customer)
        return customer

    return _create_customer


@pytest.fixture
def fetch_customer(session_factory):
    """Read an account through a fresh session (no identity-map staleness)"""
    async def _fetch(customer_id: int) -> CustomerAccount | None:
        async with session_factory() as session:
            result = await session.execute(
                select(CustomerAccount).where(CustomerAccount.customer_id == customer_id)
            )
            return result.scalar_one_or_none()

    return _fetch


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model, optionally filtered"""
    async def _count(model, *where) -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model).where(*where))
            return result.scalar_one()

    return _count


def encode_order(payload: Any) -> str:
    """base64(JSON) as carried in message.data"""
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def build_envelope(
    event_id: str = "evt-1",
    customer_id: int = 1,
    order_id: str = "order-1",
    number: int = 500,
    event_type: str = "order_create",
) -> dict[str, Any]:
    """A well-formed push envelope for an order_create event"""
    return {
        "message": {
            "data": encode_order(
                {"customer_id": customer_id, "order_id": order_id, "number": number}
            ),
            "attributes": {"event_id": event_id, "event_type": event_type},
            "messageId": f"msg-{event_id}",
        },
        "subscription": "projects/test/subscriptions/customer-service",
    }


@pytest.fixture
def envelope_factory():
    """Factory for push envelopes"""
    return build_envelope


# ============================================================================
# Redis
# ============================================================================

class FakeRedis:
    """תחליף ל-Redis לבדיקות: רושם כל publish לפי ערוץ."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    async def aclose(self) -> None:
        self.published.clear()


@pytest.fixture(autouse=True)
def fake_redis():
    """מחליף את get_redis ב-FakeRedis לכל הבדיקות."""
    _fake = FakeRedis()

    async def _get_fake_redis():
        return _fake

    with patch("app.core.redis_client.get_redis", _get_fake_redis), \
         patch("app.domain.services.health_service.get_redis", _get_fake_redis), \
         patch("app.workers.tasks.get_redis", _get_fake_redis):
        yield _fake
