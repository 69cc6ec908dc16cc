import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Tests never need a database server
os.environ.setdefault("STORE_BACKEND", "memory")

from app.core.config import Settings  # noqa: E402
from app.models.user_account import UserAccount  # noqa: E402
from app.services.catalog import BenefitCatalog  # noqa: E402
from app.services.courtesy import FlatCourtesyPolicy  # noqa: E402
from app.services.ledger import BenefitLedger  # noqa: E402
from app.store.memory import MemoryDocumentStore  # noqa: E402

NOW = datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc)

CREDIT_TIERS = {10: 60, 20: 125, 50: 330, 100: 700, 200: 1500}
UNLIMITED_TIERS = {60: 7, 120: 15, 220: 30}


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def seed_account(store: MemoryDocumentStore, account_id: str = "u1", **fields) -> UserAccount:
    """Put an account straight into the memory store (sync; usable from any fixture)."""
    fields.setdefault("email", f"{account_id}@example.com")
    account = UserAccount(id=account_id, **fields)
    store.accounts[account.id] = account
    return account


@pytest.fixture
def seed():
    return seed_account


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def catalog() -> BenefitCatalog:
    return BenefitCatalog(CREDIT_TIERS, UNLIMITED_TIERS)


@pytest.fixture
def ledger(store, catalog, clock) -> BenefitLedger:
    return BenefitLedger(store, catalog, courtesy=FlatCourtesyPolicy(3), clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(store_backend="memory", admin_token="admin-secret")


@pytest.fixture
def client(settings, store) -> Generator[TestClient, None, None]:
    from app.main import create_app
    with TestClient(create_app(settings, store=store)) as c:
        yield c


@pytest_asyncio.fixture
async def async_client(settings, store) -> AsyncGenerator[AsyncClient, None]:
    from app.main import create_app
    app = create_app(settings, store=store)
    # ASGITransport does not send lifespan events
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
