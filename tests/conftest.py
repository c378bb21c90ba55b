"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from restock_service.config import Settings, get_settings
from restock_service.infrastructure.catalog import ResolvedVariant
from restock_service.infrastructure.database import SCHEMA, Account, Base, Database
from restock_service.infrastructure.redis import CacheService
from restock_service.main import create_app
from restock_service.services.account_store import AccountStore
from restock_service.services.alert_store import AlertStore
from restock_service.services.quota_gate import QuotaGate
from restock_service.services.restock_dispatcher import RestockDispatcher
from restock_service.services.subscription_store import SubscriptionStore

from tests.fakes import (
    ACCOUNT,
    API_KEY,
    BILLING_SECRET,
    WEBHOOK_SECRET,
    FakeCatalog,
    FakeNotifier,
    FakeSender,
)


# =============================================================================
# Settings and storage
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        shopify_api_secret=WEBHOOK_SECRET,
        stripe_webhook_secret=BILLING_SECRET,
        admin_api_key=API_KEY,
        restock_channel="ping",
        restock_dispatch_policy="all",
        whatsapp_ping_content_sid="",
        trial_monthly_ceiling=50,
    )


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """In-memory SQLite database with the restock schema mapped away."""
    db = Database.from_url(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as s:
        yield s


@pytest.fixture
def accounts(session: AsyncSession) -> AccountStore:
    return AccountStore(session)


@pytest.fixture
def subscriptions(session: AsyncSession) -> SubscriptionStore:
    return SubscriptionStore(session)


@pytest.fixture
def alerts(session: AsyncSession) -> AlertStore:
    return AlertStore(session)


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog({"v1": ResolvedVariant(product_id="p1", inventory_item_id="i1")})


@pytest.fixture
def gate(accounts: AccountStore, notifier: FakeNotifier) -> QuotaGate:
    return QuotaGate(accounts, notifier, trial_ceiling=50)


@pytest.fixture
def make_dispatcher(
    subscriptions: SubscriptionStore, alerts: AlertStore, gate: QuotaGate, sender: FakeSender
):
    def _make(**kwargs: Any) -> RestockDispatcher:
        return RestockDispatcher(subscriptions, alerts, gate, sender, **kwargs)

    return _make


@pytest_asyncio.fixture
async def installed_account(accounts: AccountStore) -> Account:
    return await accounts.install(ACCOUNT, access_token="shpat_test", contact_email="owner@shop1.test")


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(
    test_settings: Settings,
    database: Database,
    sender: FakeSender,
    catalog: FakeCatalog,
    notifier: FakeNotifier,
) -> Any:
    """Create test application with fakes in place of the lifespan resources."""

    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.state.database = database
    app.state.cache = CacheService(None)
    app.state.catalog = catalog
    app.state.sender = sender
    app.state.notifier = notifier
    return app


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
