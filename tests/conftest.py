"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from stockledger.application.services import StockLedger, reset_services
from stockledger.config import reset_settings
from stockledger.core.entities import Collection
from stockledger.infrastructure.record_store import InMemoryRecordStore


@pytest.fixture(autouse=True)
def _fresh_singletons():
    """Each test sees settings and services built from its own environment."""
    reset_settings()
    reset_services()
    yield
    reset_settings()
    reset_services()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def ledger(store: InMemoryRecordStore) -> StockLedger:
    return StockLedger(store)


@pytest.fixture
def seed_stock(store: InMemoryRecordStore) -> Callable[..., dict[str, Any]]:
    """Insert a stock record directly into the store."""

    def _seed(
        branch_id: str,
        product_name: str,
        quantity: int,
        unit_price: float = 0.0,
        reorder_level: int = 10,
        version: int = 1,
    ) -> dict[str, Any]:
        return store.seed(
            Collection.STOCK.table,
            {
                "branch_id": [branch_id],
                "product_name": product_name,
                "product_id": "PRD_seed",
                "quantity_available": quantity,
                "unit_price": unit_price,
                "reorder_level": reorder_level,
                "version": version,
            },
        )

    return _seed


@pytest.fixture
def stock_of(store: InMemoryRecordStore) -> Callable[[str, str], int | None]:
    """Current quantity of (branch, product) straight from the store, None if absent."""

    def _quantity(branch_id: str, product_name: str) -> int | None:
        for record in store.all(Collection.STOCK.table):
            if branch_id in record.get("branch_id", []) and (
                record["product_name"].strip().lower() == product_name.strip().lower()
            ):
                return record["quantity_available"]
        return None

    return _quantity


@pytest.fixture
async def api_client(ledger: StockLedger) -> AsyncGenerator[AsyncClient, None]:
    """Async client against the app, wired to the in-memory ledger."""
    from stockledger.api.dependencies import get_ledger, get_store
    from stockledger.api.main import app

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_store] = lambda: ledger.store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_ledger, None)
    app.dependency_overrides.pop(get_store, None)
