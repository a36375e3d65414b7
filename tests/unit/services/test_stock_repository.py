"""Tests for StockRepository."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from stockledger.core.entities import Collection
from stockledger.core.exceptions import (
    ConcurrentModificationError,
    RecordNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from stockledger.core.services import StockRepository
from stockledger.infrastructure.record_store import InMemoryRecordStore


@pytest.fixture
def repo(store: InMemoryRecordStore) -> StockRepository:
    return StockRepository(store, conflict_backoff=0)


def _record(quantity: int, version: int, record_id: str = "recStock1") -> dict:
    return {
        "id": record_id,
        "branch_id": ["b1"],
        "product_name": "Rice",
        "quantity_available": quantity,
        "unit_price": 2.0,
        "reorder_level": 10,
        "version": version,
    }


class TestUpsertQuantity:
    async def test_creates_record_for_positive_delta(self, repo, store):
        item = await repo.upsert_quantity("b1", "Rice", 5, unit_cost=3.5)

        assert item is not None
        assert item.quantity_available == 5
        assert item.unit_price == 3.5
        assert item.reorder_level == 10
        assert item.version == 1
        assert item.product_id.startswith("PRD_")
        assert item.last_updated is not None
        assert len(store.all(Collection.STOCK.table)) == 1

    async def test_negative_delta_on_missing_record_is_noop(self, repo, store):
        result = await repo.upsert_quantity("b1", "Rice", -3)

        assert result is None
        assert store.all(Collection.STOCK.table) == []

    async def test_zero_delta_on_missing_record_is_noop(self, repo, store):
        assert await repo.upsert_quantity("b1", "Rice", 0) is None
        assert store.all(Collection.STOCK.table) == []

    async def test_increment_existing(self, repo, seed_stock, stock_of):
        seed_stock("b1", "Rice", 10)

        item = await repo.upsert_quantity("b1", "Rice", 4)

        assert item.quantity_available == 14
        assert stock_of("b1", "Rice") == 14

    async def test_decrement_clamps_at_zero(self, repo, seed_stock, stock_of):
        seed_stock("b1", "Rice", 3)

        item = await repo.upsert_quantity("b1", "Rice", -5)

        assert item.quantity_available == 0
        assert stock_of("b1", "Rice") == 0

    async def test_version_bumped_on_every_write(self, repo, seed_stock):
        seed_stock("b1", "Rice", 10, version=4)

        first = await repo.upsert_quantity("b1", "Rice", 1)
        second = await repo.upsert_quantity("b1", "Rice", -1)

        assert first.version == 5
        assert second.version == 6

    async def test_unit_cost_overwrites_price_only_when_given(self, repo, seed_stock):
        seed_stock("b1", "Rice", 10, unit_price=2.0)

        unchanged = await repo.upsert_quantity("b1", "Rice", 1)
        assert unchanged.unit_price == 2.0

        changed = await repo.upsert_quantity("b1", "Rice", 1, unit_cost=2.75)
        assert changed.unit_price == 2.75

    async def test_product_name_matched_case_insensitively(self, repo, store, seed_stock):
        seed_stock("b1", "Rice 5kg", 10)

        item = await repo.upsert_quantity("b1", "  rice 5KG ", 2)

        assert item.quantity_available == 12
        assert len(store.all(Collection.STOCK.table)) == 1

    async def test_internal_whitespace_runs_match_existing_record(self, repo, store, seed_stock):
        seed_stock("b1", "Widget Pro", 10)

        item = await repo.upsert_quantity("b1", "Widget  Pro", -3)

        assert item.quantity_available == 7
        assert len(store.all(Collection.STOCK.table)) == 1

    async def test_new_record_stores_collapsed_name(self, repo):
        item = await repo.upsert_quantity("b1", "  Widget   Pro ", 2)
        assert item.product_name == "Widget Pro"

    async def test_movement_key_applies_once(self, repo, seed_stock, stock_of):
        seed_stock("b1", "Rice", 10)

        await repo.upsert_quantity("b1", "Rice", 5, movement_key="recMov1")
        again = await repo.upsert_quantity("b1", "Rice", 5, movement_key="recMov1")

        assert again.quantity_available == 15
        assert stock_of("b1", "Rice") == 15
        assert await repo.has_applied("b1", "Rice", "recMov1")

    async def test_movement_key_on_created_record(self, repo, stock_of):
        await repo.upsert_quantity("b1", "Rice", 4, movement_key="recMov1:in")
        await repo.upsert_quantity("b1", "Rice", 4, movement_key="recMov1:in")

        assert stock_of("b1", "Rice") == 4

    async def test_key_history_is_bounded(self, store, seed_stock):
        seed_stock("b1", "Rice", 0)
        repo = StockRepository(store, conflict_backoff=0, applied_history=2)

        for key in ("m1", "m2", "m3"):
            await repo.upsert_quantity("b1", "Rice", 1, movement_key=key)

        item = await repo.get("b1", "Rice")
        assert item.applied_movements == ["m2", "m3"]
        assert item.quantity_available == 3

    async def test_branch_link_matched_exactly(self, repo, seed_stock, stock_of):
        seed_stock("b12", "Rice", 10)

        await repo.upsert_quantity("b1", "Rice", 5)

        assert stock_of("b12", "Rice") == 10
        assert stock_of("b1", "Rice") == 5

    async def test_branch_required(self, repo):
        with pytest.raises(ValidationError):
            await repo.upsert_quantity("", "Rice", 1)

    async def test_product_name_required(self, repo):
        with pytest.raises(ValidationError):
            await repo.upsert_quantity("b1", "   ", 1)

    async def test_store_failure_propagates_without_change(self, seed_stock, stock_of, store):
        seed_stock("b1", "Rice", 10)
        store.fail_on = lambda op, collection, subject: op == "update"
        repo = StockRepository(store, conflict_backoff=0)

        with pytest.raises(StoreUnavailableError):
            await repo.upsert_quantity("b1", "Rice", 5)

        assert stock_of("b1", "Rice") == 10


class TestConcurrentWrites:
    async def test_unserialized_writers_lose_an_update(self, store, seed_stock, stock_of):
        """Two interleaved read-modify-writes: one increment is lost."""
        seed_stock("b1", "Rice", 10)
        repo = StockRepository(store, serialize_writes=False, conflict_backoff=0)

        await asyncio.gather(
            repo.upsert_quantity("b1", "Rice", 5),
            repo.upsert_quantity("b1", "Rice", 5),
        )

        assert stock_of("b1", "Rice") == 15

    async def test_serialized_writers_keep_every_update(self, store, seed_stock, stock_of):
        seed_stock("b1", "Rice", 10)
        repo = StockRepository(store, serialize_writes=True, conflict_backoff=0)

        await asyncio.gather(
            repo.upsert_quantity("b1", "Rice", 5),
            repo.upsert_quantity("b1", "Rice", 5),
        )

        assert stock_of("b1", "Rice") == 20

    async def test_many_mixed_writers_conserve_quantity(self, store, seed_stock, stock_of):
        seed_stock("b1", "Rice", 50)
        repo = StockRepository(store, serialize_writes=True, conflict_backoff=0)

        deltas = [3, -2, 7, -5, 1, -1, 4, -6, 2, 2]
        await asyncio.gather(*(repo.upsert_quantity("b1", "Rice", d) for d in deltas))

        assert stock_of("b1", "Rice") == 50 + sum(deltas)

    async def test_different_keys_do_not_block_each_other(self, store, stock_of):
        repo = StockRepository(store, conflict_backoff=0)

        await asyncio.gather(
            repo.upsert_quantity("b1", "Rice", 1),
            repo.upsert_quantity("b2", "Rice", 2),
            repo.upsert_quantity("b1", "Beans", 3),
        )

        assert stock_of("b1", "Rice") == 1
        assert stock_of("b2", "Rice") == 2
        assert stock_of("b1", "Beans") == 3

    async def test_concurrent_creates_of_absent_key_produce_one_record(self, store, stock_of):
        repo = StockRepository(store, serialize_writes=True, conflict_backoff=0)

        await asyncio.gather(
            repo.upsert_quantity("b1", "Rice", 4),
            repo.upsert_quantity("b1", "Rice", 6),
        )

        assert len(store.all(Collection.STOCK.table)) == 1
        assert stock_of("b1", "Rice") == 10


class TestVersionCheck:
    async def test_conflict_is_retried_against_fresh_state(self):
        store = AsyncMock()
        store.find.side_effect = [[_record(10, 1)], [_record(12, 2)]]
        store.find_by_id.side_effect = [_record(12, 2), _record(12, 2)]
        store.update.return_value = _record(17, 3)
        repo = StockRepository(store, conflict_retries=3, conflict_backoff=0)

        item = await repo.upsert_quantity("b1", "Rice", 5)

        assert item.quantity_available == 17
        store.update.assert_called_once()
        fields = store.update.call_args[0][2]
        assert fields["quantity_available"] == 17
        assert fields["version"] == 3

    async def test_zero_retries_means_one_attempt(self):
        store = AsyncMock()
        store.find.return_value = [_record(10, 1)]
        store.find_by_id.return_value = _record(11, 2)
        repo = StockRepository(store, conflict_retries=0, conflict_backoff=0)

        with pytest.raises(ConcurrentModificationError):
            await repo.upsert_quantity("b1", "Rice", 5)

        assert store.find_by_id.call_count == 1

    async def test_persistent_conflict_raises(self):
        store = AsyncMock()
        store.find.return_value = [_record(10, 1)]
        store.find_by_id.return_value = _record(11, 2)
        repo = StockRepository(store, conflict_retries=2, conflict_backoff=0)

        with pytest.raises(ConcurrentModificationError):
            await repo.upsert_quantity("b1", "Rice", 5)

        store.update.assert_not_called()
        assert store.find_by_id.call_count == 2


class TestReads:
    async def test_query_by_branch(self, repo, seed_stock):
        seed_stock("b1", "Rice", 10)
        seed_stock("b1", "Beans", 4)
        seed_stock("b12", "Rice", 7)

        items = await repo.query(branch_id="b1")

        assert [i.product_name for i in items] == ["Beans", "Rice"]

    async def test_query_by_product_substring(self, repo, seed_stock):
        seed_stock("b1", "Rice 5kg", 10)
        seed_stock("b2", "Brown rice", 4)
        seed_stock("b2", "Beans", 4)

        items = await repo.query(product_name="rice")

        assert {i.product_name for i in items} == {"Rice 5kg", "Brown rice"}

    async def test_low_stock(self, repo, seed_stock):
        seed_stock("b1", "Rice", 10, reorder_level=10)
        seed_stock("b1", "Beans", 30, reorder_level=10)

        low = await repo.low_stock("b1")

        assert [i.product_name for i in low] == ["Rice"]

    async def test_invalid_records_skipped(self, repo, store, seed_stock):
        seed_stock("b1", "Rice", 10)
        store.seed(Collection.STOCK.table, {"branch_id": ["b1"], "quantity_available": 3})

        items = await repo.query(branch_id="b1")

        assert len(items) == 1

    async def test_delete(self, repo, seed_stock, stock_of):
        record = seed_stock("b1", "Rice", 10)

        await repo.delete(record["id"])

        assert stock_of("b1", "Rice") is None


class TestCreateRecord:
    async def test_registers_opening_quantity(self, repo, stock_of):
        item = await repo.create_record("b1", " Rice  5kg ", 12, 3.5, reorder_level=4)

        assert item.product_name == "Rice 5kg"
        assert item.quantity_available == 12
        assert item.unit_price == 3.5
        assert item.reorder_level == 4
        assert item.version == 1
        assert item.product_id.startswith("PRD_")
        assert stock_of("b1", "Rice 5kg") == 12

    async def test_default_reorder_level(self, repo):
        item = await repo.create_record("b1", "Rice", 0, 1.0)
        assert item.reorder_level == 10

    async def test_duplicate_product_refused(self, repo, seed_stock, store):
        seed_stock("b1", "Rice", 10)

        with pytest.raises(ValidationError):
            await repo.create_record("b1", "  rice ", 5, 1.0)
        assert len(store.all(Collection.STOCK.table)) == 1

    async def test_same_product_other_branch_allowed(self, repo, seed_stock, stock_of):
        seed_stock("b1", "Rice", 10)

        await repo.create_record("b2", "Rice", 5, 1.0)

        assert stock_of("b2", "Rice") == 5

    @pytest.mark.parametrize(
        "branch,name,quantity,price",
        [("", "Rice", 1, 1.0), ("b1", " ", 1, 1.0), ("b1", "Rice", -1, 1.0), ("b1", "Rice", 1, -1.0)],
    )
    async def test_validation(self, repo, branch, name, quantity, price):
        with pytest.raises(ValidationError):
            await repo.create_record(branch, name, quantity, price)


class TestUpdateDetails:
    async def test_edits_price_and_reorder_level_not_quantity(self, repo, seed_stock, stock_of):
        record = seed_stock("b1", "Rice", 8, unit_price=2.0, reorder_level=5)

        updated = await repo.update_details(record["id"], unit_price=2.5, reorder_level=10)

        assert updated.unit_price == 2.5
        assert updated.reorder_level == 10
        assert updated.is_low_stock
        assert updated.quantity_available == 8
        assert updated.version == 2
        assert stock_of("b1", "Rice") == 8

    async def test_rename(self, repo, seed_stock):
        record = seed_stock("b1", "Rice", 8)

        updated = await repo.update_details(record["id"], product_name="Rice  5kg")

        assert updated.product_name == "Rice 5kg"
        assert await repo.get("b1", "rice 5kg") is not None

    async def test_rename_onto_other_record_refused(self, repo, seed_stock):
        seed_stock("b1", "Rice", 8)
        beans = seed_stock("b1", "Beans", 3)

        with pytest.raises(ValidationError):
            await repo.update_details(beans["id"], product_name="RICE")

    async def test_negative_values_refused(self, repo, seed_stock):
        record = seed_stock("b1", "Rice", 8)

        with pytest.raises(ValidationError):
            await repo.update_details(record["id"], unit_price=-1)
        with pytest.raises(ValidationError):
            await repo.update_details(record["id"], reorder_level=-1)

    async def test_missing_record(self, repo):
        with pytest.raises(RecordNotFoundError):
            await repo.update_details("recMissing", unit_price=1.0)
