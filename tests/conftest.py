"""Shared fixtures: a two-item catalog, a fake processor and a wired service."""

import pytest
import pytest_asyncio

from checkout.catalog import MemoryCatalog
from checkout.config import Settings, reset_settings
from checkout.db import create_database
from checkout.domain import BuyerProfile
from checkout.notifications import MemoryNotificationSink
from checkout.orders import MemoryOrderRepository
from checkout.payments import FakeProcessor
from checkout.profiles import MemoryProfileStore
from checkout.quote import QuoteContext
from checkout.service import CheckoutService
from checkout.shipping import FeeTable
from tests.support import BUYER, PRODUCT_A, PRODUCT_B, FakeClock


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(processor_retry_delay_seconds=0.0, processor_timeout_seconds=1.0)


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog([PRODUCT_A, PRODUCT_B])


@pytest.fixture
def profiles() -> MemoryProfileStore:
    return MemoryProfileStore([BuyerProfile(buyer_id=BUYER, display_name="購入者")])


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifications() -> MemoryNotificationSink:
    return MemoryNotificationSink()


@pytest.fixture
def orders() -> MemoryOrderRepository:
    return MemoryOrderRepository()


@pytest.fixture
def service(catalog, orders, profiles, processor, notifications, settings, clock) -> CheckoutService:
    return CheckoutService(
        catalog=catalog,
        orders=orders,
        processor=processor,
        profiles=profiles,
        notifications=notifications,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def context(catalog, profiles) -> QuoteContext:
    return QuoteContext(catalog=catalog, profiles=profiles, fee_table=FeeTable.standard())


@pytest_asyncio.fixture
async def session_factory():
    factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    yield factory
    await engine.dispose()
