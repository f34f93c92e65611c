"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import os

# Settings are read at import time; configure before billsync is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STRIPE_MODE"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_billsync"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_billsync_test"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from billsync.main import app
from billsync.api.dependencies import get_account_provisioner, get_stripe_gateway
from billsync.core.constants import UserRole
from billsync.core.security import create_access_token
from billsync.db.base import Base
from billsync.db.database import get_db
from billsync.db.models.tenant import Tenant
from billsync.db.models.user import User
from billsync.services.account_provisioner import AccountProvisioner
from billsync.services.stripe_gateway import StripeGateway


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create clean database for each test"""

    # One in-memory database per test, shared by every connection through StaticPool
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await test_engine.dispose()


@pytest.fixture
def stripe_gateway() -> AsyncMock:
    """Stripe gateway double; tests set return values per call"""
    gateway = AsyncMock(spec=StripeGateway)
    gateway.configured = True
    return gateway


@pytest.fixture
def provisioner() -> AsyncMock:
    return AsyncMock(spec=AccountProvisioner)


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, stripe_gateway, provisioner) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and provider overrides"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_gateway] = lambda: stripe_gateway
    app.dependency_overrides[get_account_provisioner] = lambda: provisioner

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def test_tenant(db_session: AsyncSession) -> Tenant:
    """Create test tenant without a Stripe customer"""

    tenant = Tenant(name="Test Company")

    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)

    return tenant


@pytest.fixture
async def linked_tenant(db_session: AsyncSession) -> Tenant:
    """Create test tenant already linked to cus_linked"""

    tenant = Tenant(name="Linked Company", stripe_customer_id="cus_linked")

    db_session.add(tenant)
    await db_session.commit()
    await db_session.refresh(tenant)

    return tenant


@pytest.fixture
async def test_user(db_session: AsyncSession, test_tenant: Tenant) -> User:
    """Create tenant owner"""

    user = User(
        email="owner@example.com",
        full_name="Test Owner",
        auth_user_id="auth-user-1",
        tenant_id=test_tenant.id,
        role=UserRole.OWNER.value,
        is_active=True,
    )

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate auth headers for test user"""

    access_token = create_access_token(test_user.auth_user_id)

    return {"Authorization": f"Bearer {access_token}"}
