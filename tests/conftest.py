# Shared pytest configuration and fixtures for all test types
import pytest_asyncio
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from api.main import app
from common.db.session import get_db
from common.db.base import Base
from packages.accounts.models.database.account import AccountEntity
from packages.resources.models.database.resource import ResourceEntity
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.auth.dependencies import get_current_account
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.models.domain.subscription import Subscription

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so transaction() commits
    release savepoints instead of ending the outer test transaction.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch the session factory to use the test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)


@pytest_asyncio.fixture(scope="function")
async def sample_account(test_db: AsyncSession):
    """Create a sample account for testing."""
    account = AccountEntity(email="owner@example.com", name="Example Co")
    test_db.add(account)
    await test_db.commit()
    await test_db.refresh(account)
    return account


@pytest_asyncio.fixture(scope="function")
async def second_account(test_db: AsyncSession):
    """Create a second account for isolation tests."""
    account = AccountEntity(email="other@example.com", name="Other Co")
    test_db.add(account)
    await test_db.commit()
    await test_db.refresh(account)
    return account


@pytest_asyncio.fixture(scope="function")
async def authenticated_account(sample_account):
    return AuthenticatedAccount(account_id=sample_account.id)


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession, authenticated_account):
    """Create a test client authenticated as the sample account."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    def override_get_current_account():
        return authenticated_account

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_account] = override_get_current_account

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def anonymous_client(test_db: AsyncSession):
    """Create a test client without an authenticated account."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


async def _add_subscription(test_db: AsyncSession, **values) -> Subscription:
    now = datetime.now(timezone.utc)
    entity = SubscriptionEntity(
        current_period_start=now,
        current_period_end=now + timedelta(days=30),
        cancel_at_period_end=False,
        created_at=now,
        updated_at=now,
        **values,
    )
    test_db.add(entity)
    await test_db.commit()
    await test_db.refresh(entity)
    return Subscription.model_validate(entity)


@pytest_asyncio.fixture(scope="function")
async def pro_subscription(test_db: AsyncSession, sample_account):
    """An active paid pro subscription backed by the provider."""
    return await _add_subscription(
        test_db,
        account_id=sample_account.id,
        plan_id="pro",
        status=SubscriptionStatus.ACTIVE.value,
        external_customer_id="cus_test123",
        external_subscription_id="sub_test123",
    )


@pytest_asyncio.fixture(scope="function")
async def free_subscription(test_db: AsyncSession, sample_account):
    """An explicit free plan row."""
    return await _add_subscription(
        test_db,
        account_id=sample_account.id,
        plan_id="free",
        status=SubscriptionStatus.ACTIVE.value,
    )


@pytest_asyncio.fixture(scope="function")
async def resource_factory(test_db: AsyncSession):
    """Insert resources for an account."""

    async def _create(account_id: int, count: int = 1, payload: str = "", **kwargs):
        entities = [
            ResourceEntity(
                account_id=account_id,
                name=f"resource-{i}",
                payload=payload,
                **kwargs,
            )
            for i in range(count)
        ]
        test_db.add_all(entities)
        await test_db.commit()
        return entities

    return _create
