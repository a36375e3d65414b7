"""Tests for InventoryAdjustments."""

from datetime import date

import pytest

from stockledger.core.entities import (
    AdjustmentStatus,
    AdjustmentType,
    Collection,
    ItemOutcome,
    MovementType,
)
from stockledger.core.exceptions import (
    AdjustmentNotFoundError,
    InvalidStateError,
    PartialBatchError,
    ValidationError,
)
from stockledger.core.services import AdjustmentLine, InventoryAdjustments

TAKE_DATE = date(2024, 4, 1)


@pytest.fixture
def adjustments(ledger) -> InventoryAdjustments:
    return ledger.adjustments


class TestCreateAdjustment:
    async def test_snapshots_system_quantity_and_price(self, adjustments, seed_stock, stock_of):
        seed_stock("bA", "Rice", 10, unit_price=2.0)

        detail = await adjustments.create_adjustment(
            "bA",
            AdjustmentType.STOCK_TAKE,
            TAKE_DATE,
            [AdjustmentLine("Rice", 7), AdjustmentLine("Beans", 4)],
            reason="Monthly count",
        )

        rice, beans = detail.items
        assert rice.system_quantity == 10
        assert rice.quantity_difference == -3
        assert rice.value_impact == -6.0
        assert beans.system_quantity == 0
        assert beans.quantity_difference == 4
        assert detail.adjustment.status == AdjustmentStatus.DRAFT
        assert detail.adjustment.total_items == 2
        assert detail.adjustment.total_quantity_impact == 1
        assert detail.adjustment.total_value_impact == -6.0
        assert stock_of("bA", "Rice") == 10

    async def test_explicit_system_quantity(self, adjustments):
        detail = await adjustments.create_adjustment(
            "bA",
            AdjustmentType.DAMAGE,
            TAKE_DATE,
            [AdjustmentLine("Rice", 2, system_quantity=5, unit_cost=1.5)],
        )

        assert detail.items[0].quantity_difference == -3
        assert detail.items[0].value_impact == -4.5

    @pytest.mark.parametrize(
        "branch,items",
        [
            ("", [AdjustmentLine("Rice", 1)]),
            ("bA", []),
            ("bA", [AdjustmentLine("", 1)]),
            ("bA", [AdjustmentLine("Rice", -1)]),
        ],
    )
    async def test_validation(self, adjustments, branch, items):
        with pytest.raises(ValidationError):
            await adjustments.create_adjustment(branch, AdjustmentType.OTHER, TAKE_DATE, items)


class TestApproveAdjustment:
    async def test_applies_differences(self, adjustments, ledger, seed_stock, stock_of):
        seed_stock("bA", "Rice", 10)
        seed_stock("bA", "Beans", 4)
        seed_stock("bA", "Salt", 6)
        detail = await adjustments.create_adjustment(
            "bA",
            AdjustmentType.STOCK_TAKE,
            TAKE_DATE,
            [
                AdjustmentLine("Rice", 7, reason="spillage"),
                AdjustmentLine("Beans", 9),
                AdjustmentLine("Salt", 6),
            ],
            reason="Monthly count",
        )
        adjustment_id = detail.adjustment.id

        result = await adjustments.approve_adjustment(adjustment_id, "mgr1")

        assert [i.outcome for i in result.items] == [
            ItemOutcome.APPLIED,
            ItemOutcome.APPLIED,
            ItemOutcome.SKIPPED,
        ]
        assert stock_of("bA", "Rice") == 7
        assert stock_of("bA", "Beans") == 9
        assert stock_of("bA", "Salt") == 6

        movements = await ledger.movements.list_movements(adjustment_id=adjustment_id)
        assert {(m.movement_type, m.quantity, m.reason) for m in movements} == {
            (MovementType.ADJUSTMENT_DECREASE, 3, "spillage"),
            (MovementType.ADJUSTMENT_INCREASE, 5, "Monthly count"),
        }

        approved = await adjustments.get_adjustment(adjustment_id)
        assert approved.adjustment.status == AdjustmentStatus.APPROVED
        assert approved.adjustment.approved_by == "mgr1"

    async def test_missing_stock_record_skipped(self, adjustments, stock_of):
        detail = await adjustments.create_adjustment(
            "bA", AdjustmentType.FOUND, TAKE_DATE, [AdjustmentLine("Beans", 4)]
        )

        result = await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        assert [i.outcome for i in result.items] == [ItemOutcome.SKIPPED]
        assert stock_of("bA", "Beans") is None

    async def test_only_once(self, adjustments, seed_stock, stock_of):
        seed_stock("bA", "Rice", 10)
        detail = await adjustments.create_adjustment(
            "bA", AdjustmentType.THEFT, TAKE_DATE, [AdjustmentLine("Rice", 8)]
        )
        await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        with pytest.raises(InvalidStateError):
            await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")
        assert stock_of("bA", "Rice") == 8

    async def test_interrupted_approval_can_be_redriven(
        self, adjustments, store, seed_stock, stock_of
    ):
        seed_stock("bA", "Rice", 10)
        beans = seed_stock("bA", "Beans", 4)
        detail = await adjustments.create_adjustment(
            "bA",
            AdjustmentType.STOCK_TAKE,
            TAKE_DATE,
            [AdjustmentLine("Rice", 7), AdjustmentLine("Beans", 6)],
        )
        store.fail_on = lambda op, collection, subject: op == "update" and subject == beans["id"]

        with pytest.raises(PartialBatchError) as exc:
            await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        assert [i.outcome for i in exc.value.result.items] == [
            ItemOutcome.APPLIED,
            ItemOutcome.FAILED,
        ]
        store.fail_on = None
        draft = await adjustments.get_adjustment(detail.adjustment.id)
        assert draft.adjustment.status == AdjustmentStatus.DRAFT

        result = await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        assert [i.outcome for i in result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
        ]
        assert stock_of("bA", "Rice") == 7
        assert stock_of("bA", "Beans") == 6

    async def test_redrive_after_movement_completion_write_failure_applies_once(
        self, adjustments, store, seed_stock, stock_of
    ):
        seed_stock("bA", "Rice", 10)
        seed_stock("bA", "Beans", 4)
        detail = await adjustments.create_adjustment(
            "bA",
            AdjustmentType.STOCK_TAKE,
            TAKE_DATE,
            [AdjustmentLine("Rice", 7), AdjustmentLine("Beans", 6)],
        )
        # Beans stock lands, then its movement cannot be marked completed
        store.fail_on = lambda op, collection, subject: (
            op == "update"
            and collection == Collection.MOVEMENTS.table
            and stock_of("bA", "Beans") == 6
        )

        with pytest.raises(PartialBatchError):
            await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")
        assert stock_of("bA", "Beans") == 6

        store.fail_on = None
        result = await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        assert [i.outcome for i in result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
        ]
        assert stock_of("bA", "Rice") == 7
        assert stock_of("bA", "Beans") == 6

    async def test_redrive_after_movement_create_failure(
        self, adjustments, store, seed_stock, stock_of
    ):
        seed_stock("bA", "Beans", 4)
        detail = await adjustments.create_adjustment(
            "bA", AdjustmentType.STOCK_TAKE, TAKE_DATE, [AdjustmentLine("Beans", 6)]
        )
        store.fail_on = lambda op, collection, subject: (
            op == "create" and collection == Collection.MOVEMENTS.table
        )

        with pytest.raises(PartialBatchError):
            await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")
        assert stock_of("bA", "Beans") == 4

        store.fail_on = None
        await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")

        assert stock_of("bA", "Beans") == 6


class TestRejectAdjustment:
    async def test_reason_required(self, adjustments):
        detail = await adjustments.create_adjustment(
            "bA", AdjustmentType.OTHER, TAKE_DATE, [AdjustmentLine("Rice", 1)]
        )
        with pytest.raises(ValidationError):
            await adjustments.reject_adjustment(detail.adjustment.id, "mgr1", "  ")

    async def test_rejected_is_final(self, adjustments, seed_stock, stock_of):
        seed_stock("bA", "Rice", 10)
        detail = await adjustments.create_adjustment(
            "bA", AdjustmentType.OTHER, TAKE_DATE, [AdjustmentLine("Rice", 1)]
        )

        rejected = await adjustments.reject_adjustment(detail.adjustment.id, "mgr1", "recount")

        assert rejected.status == AdjustmentStatus.REJECTED
        assert rejected.rejection_reason == "recount"
        with pytest.raises(InvalidStateError):
            await adjustments.approve_adjustment(detail.adjustment.id, "mgr1")
        assert stock_of("bA", "Rice") == 10


class TestQueries:
    async def test_not_found(self, adjustments):
        with pytest.raises(AdjustmentNotFoundError):
            await adjustments.get_adjustment("recMissing")

    async def test_list_by_branch_and_status(self, adjustments):
        first = await adjustments.create_adjustment(
            "b1", AdjustmentType.OTHER, TAKE_DATE, [AdjustmentLine("Rice", 1)]
        )
        await adjustments.create_adjustment(
            "b12", AdjustmentType.OTHER, TAKE_DATE, [AdjustmentLine("Rice", 1)]
        )
        await adjustments.reject_adjustment(first.adjustment.id, "mgr1", "recount")

        by_branch = await adjustments.list_adjustments(branch_id="b1")
        drafts = await adjustments.list_adjustments(status=AdjustmentStatus.DRAFT)

        assert [a.id for a in by_branch] == [first.adjustment.id]
        assert [a.branch_id for a in drafts] == ["b12"]
