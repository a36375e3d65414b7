"""
Inventory adjustments.

A stock take or write-off is drafted as counted-vs-system lines and only
touches stock when approved. Approval applies each line's difference through
the movement ledger as an adjustment_increase or adjustment_decrease.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from stockledger.config import get_logger
from stockledger.core.entities import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    AdjustmentWithItems,
    BatchResult,
    Collection,
    InventoryAdjustment,
    ItemOutcome,
    Movement,
    MovementType,
    normalize_product_name,
    utcnow,
)
from stockledger.core.exceptions import (
    AdjustmentNotFoundError,
    InvalidStateError,
    PartialBatchError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from stockledger.core.filters import ArrayContains, Eq, SortSpec, all_of, has_link
from stockledger.core.interfaces import IRecordStore
from stockledger.core.services.movement_ledger import MovementLedger

logger = get_logger(__name__)


@dataclass
class AdjustmentLine:
    product_name: str
    actual_quantity: int
    system_quantity: int | None = None  # defaults to current stock
    unit_cost: float | None = None  # defaults to current unit price
    reason: str = ""


class InventoryAdjustments:
    """Draft, approve and reject inventory adjustments."""

    def __init__(self, store: IRecordStore, ledger: MovementLedger):
        self._store = store
        self._ledger = ledger

    async def create_adjustment(
        self,
        branch_id: str,
        adjustment_type: AdjustmentType,
        adjustment_date: date,
        items: list[AdjustmentLine],
        reason: str = "",
        reference_number: str | None = None,
        notes: str = "",
        created_by: str | None = None,
    ) -> AdjustmentWithItems:
        """Record a draft adjustment, snapshotting system quantities and prices."""
        if not branch_id:
            raise ValidationError("branch_id", "is required")
        if not items:
            raise ValidationError("items", "at least one item is required")
        for i, line in enumerate(items):
            if not line.product_name or not line.product_name.strip():
                raise ValidationError(f"items.{i}.product_name", "is required")
            if line.actual_quantity < 0:
                raise ValidationError(
                    f"items.{i}.actual_quantity", "must not be negative", line.actual_quantity
                )

        drafted: list[AdjustmentItem] = []
        for line in items:
            name = line.product_name.strip()
            system_quantity, unit_cost = line.system_quantity, line.unit_cost
            if system_quantity is None or unit_cost is None:
                stock = await self._ledger.stock.get(branch_id, name)
                if system_quantity is None:
                    system_quantity = stock.quantity_available if stock else 0
                if unit_cost is None:
                    unit_cost = stock.unit_price if stock else 0.0
            difference = line.actual_quantity - system_quantity
            drafted.append(
                AdjustmentItem(
                    adjustment_id="",
                    product_name=name,
                    system_quantity=system_quantity,
                    actual_quantity=line.actual_quantity,
                    quantity_difference=difference,
                    unit_cost=unit_cost,
                    value_impact=difference * unit_cost,
                    reason=line.reason,
                )
            )

        adjustment = InventoryAdjustment(
            branch_id=branch_id,
            adjustment_type=adjustment_type,
            adjustment_date=adjustment_date,
            reason=reason,
            reference_number=reference_number,
            notes=notes,
            total_items=len(drafted),
            total_quantity_impact=sum(i.quantity_difference for i in drafted),
            total_value_impact=sum(i.value_impact for i in drafted),
            created_by=created_by,
        )
        record = await self._store.create(Collection.ADJUSTMENTS.table, adjustment.to_fields())
        adjustment = InventoryAdjustment.from_record(record)

        created = []
        for item in drafted:
            item.adjustment_id = adjustment.id  # type: ignore[assignment]
            record = await self._store.create(Collection.ADJUSTMENT_ITEMS.table, item.to_fields())
            created.append(AdjustmentItem.from_record(record))

        logger.info(
            "adjustment_created",
            adjustment_id=adjustment.id,
            branch_id=branch_id,
            adjustment_type=adjustment.adjustment_type.value,
            items=len(created),
            quantity_impact=adjustment.total_quantity_impact,
        )
        return AdjustmentWithItems(adjustment=adjustment, items=created)

    async def get_adjustment(self, adjustment_id: str) -> AdjustmentWithItems:
        adjustment = await self._load(adjustment_id)
        return AdjustmentWithItems(adjustment=adjustment, items=await self._items(adjustment_id))

    async def list_adjustments(
        self,
        branch_id: str | None = None,
        status: AdjustmentStatus | None = None,
    ) -> list[InventoryAdjustment]:
        records = await self._store.find(
            Collection.ADJUSTMENTS.table,
            all_of(
                ArrayContains("branch_id", branch_id) if branch_id else None,
                Eq("status", status.value) if status else None,
            ),
            sort=[SortSpec("created_at", "desc")],
        )
        adjustments = []
        for record in records:
            if branch_id and not has_link(record, "branch_id", branch_id):
                continue
            try:
                adjustments.append(InventoryAdjustment.from_record(record))
            except PydanticValidationError as e:
                logger.warning("adjustment_record_skipped", record_id=record.get("id"), error=str(e))
        return adjustments

    async def approve_adjustment(self, adjustment_id: str, approver_id: str | None) -> BatchResult:
        """
        Apply every non-zero line to stock and mark the adjustment approved.

        Lines whose product has no stock record at the branch are skipped.
        A store failure stops the batch and leaves the adjustment in draft;
        approving again skips lines that were already applied.
        """
        adjustment = await self._load(adjustment_id)
        if adjustment.status != AdjustmentStatus.DRAFT:
            raise InvalidStateError(
                "Adjustment", adjustment_id, adjustment.status.value, AdjustmentStatus.DRAFT.value
            )
        items = await self._items(adjustment_id)

        # Completed movements are done; pending ones were interrupted after
        # their row was written and are finished by approving them
        done: Counter[tuple[str, MovementType, int]] = Counter()
        unfinished: dict[tuple[str, MovementType, int], list[Movement]] = {}
        for m in await self._ledger.list_movements(adjustment_id=adjustment_id):
            key = (normalize_product_name(m.product_name), m.movement_type, m.quantity)
            if m.is_completed:
                done[key] += 1
            elif m.is_pending:
                unfinished.setdefault(key, []).append(m)

        result = BatchResult()
        for i, item in enumerate(items):
            if item.quantity_difference == 0:
                result.add(item.product_name, ItemOutcome.SKIPPED, record_id=item.id, error="no difference")
                continue

            increase = item.quantity_difference > 0
            movement_type = (
                MovementType.ADJUSTMENT_INCREASE if increase else MovementType.ADJUSTMENT_DECREASE
            )
            quantity = abs(item.quantity_difference)
            key = (normalize_product_name(item.product_name), movement_type, quantity)
            if done[key] > 0:
                done[key] -= 1
                result.add(item.product_name, ItemOutcome.ALREADY_APPLIED, record_id=item.id)
                continue

            try:
                if unfinished.get(key):
                    movement = await self._ledger.approve_movement(
                        unfinished[key].pop(0).id, approver_id  # type: ignore[arg-type]
                    )
                else:
                    stock = await self._ledger.stock.get(adjustment.branch_id, item.product_name)
                    if stock is None:
                        logger.warning(
                            "adjustment_stock_missing",
                            adjustment_id=adjustment_id,
                            branch_id=adjustment.branch_id,
                            product_name=item.product_name,
                        )
                        result.add(
                            item.product_name,
                            ItemOutcome.SKIPPED,
                            record_id=item.id,
                            error="no stock record at branch",
                        )
                        continue

                    branch = {"to_branch_id" if increase else "from_branch_id": adjustment.branch_id}
                    movement = await self._ledger.record_movement(
                        Movement(
                            movement_type=movement_type,
                            product_name=stock.product_name,
                            product_id=stock.product_id,
                            quantity=quantity,
                            unit_cost=0.0,
                            adjustment_id=adjustment_id,
                            requested_by=adjustment.created_by,
                            reason=item.reason or adjustment.reason or adjustment.adjustment_type.value,
                            transfer_date=adjustment.adjustment_date,
                            **branch,
                        ),
                        actor_id=approver_id,
                    )
            except StoreError as e:
                result.add(item.product_name, ItemOutcome.FAILED, record_id=item.id, error=str(e))
                for rest in items[i + 1 :]:
                    result.add(rest.product_name, ItemOutcome.NOT_ATTEMPTED, record_id=rest.id)
                logger.error(
                    "adjustment_approve_interrupted",
                    adjustment_id=adjustment_id,
                    applied=len(result.applied),
                    error=str(e),
                )
                raise PartialBatchError("approve_adjustment", result, reason=str(e)) from e

            result.add(
                item.product_name,
                ItemOutcome.APPLIED,
                record_id=item.id,
                data={"movement_id": movement.id},
            )

        await self._decide(adjustment_id, AdjustmentStatus.APPROVED, approver_id)
        logger.info(
            "adjustment_approved",
            adjustment_id=adjustment_id,
            approved_by=approver_id,
            outcome=result.outcome.value,
        )
        return result

    async def reject_adjustment(
        self, adjustment_id: str, approver_id: str | None, reason: str
    ) -> InventoryAdjustment:
        if not reason or not reason.strip():
            raise ValidationError("reason", "is required to reject an adjustment")
        adjustment = await self._load(adjustment_id)
        if adjustment.status != AdjustmentStatus.DRAFT:
            raise InvalidStateError(
                "Adjustment", adjustment_id, adjustment.status.value, AdjustmentStatus.DRAFT.value
            )
        updated = await self._decide(adjustment_id, AdjustmentStatus.REJECTED, approver_id, reason)
        logger.info("adjustment_rejected", adjustment_id=adjustment_id, reason=reason)
        return updated

    async def _load(self, adjustment_id: str) -> InventoryAdjustment:
        try:
            record = await self._store.find_by_id(Collection.ADJUSTMENTS.table, adjustment_id)
        except RecordNotFoundError as e:
            raise AdjustmentNotFoundError(adjustment_id) from e
        return InventoryAdjustment.from_record(record)

    async def _items(self, adjustment_id: str) -> list[AdjustmentItem]:
        records = await self._store.find(
            Collection.ADJUSTMENT_ITEMS.table, ArrayContains("adjustment_id", adjustment_id)
        )
        return [
            AdjustmentItem.from_record(r)
            for r in records
            if has_link(r, "adjustment_id", adjustment_id)
        ]

    async def _decide(
        self,
        adjustment_id: str,
        status: AdjustmentStatus,
        approver_id: str | None,
        reason: str | None = None,
    ) -> InventoryAdjustment:
        fields: dict[str, Any] = {"status": status.value, "approved_at": utcnow().isoformat()}
        if approver_id:
            fields["approved_by"] = [approver_id]
        if reason:
            fields["rejection_reason"] = reason
        record = await self._store.update(Collection.ADJUSTMENTS.table, adjustment_id, fields)
        return InventoryAdjustment.from_record(record)
