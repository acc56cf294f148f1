"""Shared fixtures: throwaway SQLite databases for both services, seeded billing data."""

import os
import tempfile

# Settings are read at import time, so the environment must be ready first.
_DB_DIR = tempfile.mkdtemp(prefix="paysub-tests-")
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/billing.db"
os.environ["GATEWAY_DATABASE_URL"] = f"sqlite:///{_DB_DIR}/gateway.db"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["APP_URL"] = "http://billing.test"
os.environ["PAYMENT_SERVICE_URL"] = "http://gateway.test"
os.environ["FORCE_PAYMENT_SUCCESS"] = "false"
os.environ["RESTORE_PLAN_ON_FAILED_UPGRADE"] = "false"

from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from billing.db.session import async_session_factory as billing_session_factory  # noqa: E402
from billing.db.session import engine as billing_engine  # noqa: E402
from billing.models import Base as BillingBase  # noqa: E402
from billing.models import Plan  # noqa: E402
from billing.seed import seed_database  # noqa: E402
from billing.services.payment_client import PaymentInitiation  # noqa: E402
from gateway.db.session import async_session_factory as gateway_session_factory  # noqa: E402
from gateway.db.session import engine as gateway_engine  # noqa: E402
from gateway.models import Base as GatewayBase  # noqa: E402
from gateway.services.delivery_service import shutdown_deliveries  # noqa: E402


@pytest_asyncio.fixture(autouse=True)
async def _databases():
    """Fresh tables for every test; engines disposed so no connection outlives its loop."""
    async with billing_engine.begin() as conn:
        await conn.run_sync(BillingBase.metadata.create_all)
    async with gateway_engine.begin() as conn:
        await conn.run_sync(GatewayBase.metadata.create_all)

    yield

    await shutdown_deliveries()
    async with billing_engine.begin() as conn:
        await conn.run_sync(BillingBase.metadata.drop_all)
    async with gateway_engine.begin() as conn:
        await conn.run_sync(GatewayBase.metadata.drop_all)
    await billing_engine.dispose()
    await gateway_engine.dispose()


@pytest_asyncio.fixture
async def billing_db():
    async with billing_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def gateway_db():
    async with gateway_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(billing_db):
    """Seed user plus fixed-basic (9.99), fixed-pro (29.99) and fixed-max (49.99). No subscription."""
    result = await seed_database(billing_db, with_subscription=False)
    billing_db.add(
        Plan(
            id="fixed-max",
            name="Max",
            description="Max plan",
            price=Decimal("49.99"),
            billing_cycle="MONTHLY",
            features=["feature-a", "feature-b", "feature-c"],
        )
    )
    await billing_db.commit()
    return result


@pytest.fixture
def payment_gateway(monkeypatch):
    """Replace the outbound gateway calls made by the subscription service."""
    initiate = AsyncMock(return_value=PaymentInitiation(payment_id="pay-1", status="SUCCESS", message="ok"))
    cancel = AsyncMock(return_value=0)
    monkeypatch.setattr("billing.services.subscription_service.initiate_payment", initiate)
    monkeypatch.setattr("billing.services.subscription_service.cancel_deliveries", cancel)
    return initiate, cancel
