"""
Order fulfillment orchestrator.

Supplier purchase orders: approval, payments, goods receipt against the
order, and force-completion that books stock into destination branches.

Receipts and completions are multi-item batches. Each item's stock effect
goes through the movement ledger; a store failure stops the batch with a
PartialBatchError that lists what was applied. A completion that stopped
part way leaves the order open. Re-driving it skips items whose completion
movement is completed and finishes the ones an interruption left pending.
An interrupted receive is resumed by passing its receive_id back in.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from stockledger.config import get_logger
from stockledger.core.entities import (
    ApprovalStatus,
    BatchResult,
    Collection,
    ItemCondition,
    ItemOutcome,
    Movement,
    MovementStatus,
    MovementType,
    Order,
    OrderItem,
    OrderStatus,
    OrderWithItems,
    PurchaseReceive,
    ReceiveItem,
    ReceiveStatus,
    ReceiveWithItems,
    TransferReceipt,
    normalize_product_name,
    utcnow,
)
from stockledger.core.exceptions import (
    InvalidStateError,
    OrderNotFoundError,
    PartialBatchError,
    ReceiveNotFoundError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from stockledger.core.filters import ArrayContains, Eq, SortSpec, all_of, has_link
from stockledger.core.interfaces import IRecordStore
from stockledger.core.services.movement_ledger import MovementLedger

logger = get_logger(__name__)


@dataclass
class OrderLine:
    product_name: str
    quantity_ordered: int
    purchase_price_per_unit: float = 0.0
    branch_destination_id: str | None = None


@dataclass
class ReceiveLine:
    product_name: str
    quantity_received: int
    unit_cost: float = 0.0
    condition: ItemCondition = ItemCondition.GOOD
    quantity_ordered: int | None = None
    order_item_id: str | None = None
    notes: str | None = None


@dataclass
class CompletionLine:
    product_name: str
    quantity: int
    branch_destination_id: str | None
    unit_cost: float | None = None


class ReceiveResult(BaseModel):
    order: Order
    receive: PurchaseReceive
    items: list[ReceiveItem] = []
    result: BatchResult


class CompletionResult(BaseModel):
    order: Order
    receipts: list[TransferReceipt] = []
    result: BatchResult


def _receive_key(product_name: str, quantity: int, condition: ItemCondition) -> tuple[str, int, str]:
    return (normalize_product_name(product_name), quantity, condition.value)


def _completion_key(branch_id: str, product_name: str, quantity: int) -> tuple[str, str, int]:
    return (branch_id, normalize_product_name(product_name), quantity)


class OrderFulfillment:
    """Purchase order lifecycle over the record store and the movement ledger."""

    def __init__(self, store: IRecordStore, ledger: MovementLedger):
        self._store = store
        self._ledger = ledger

    # Orders

    async def create_order(
        self,
        supplier_name: str,
        order_date: date,
        items: list[OrderLine],
        expected_delivery_date: date | None = None,
        created_by: str | None = None,
    ) -> OrderWithItems:
        """
        Create a draft order and its lines.

        If a line fails to write, lines already written and the header are
        removed again before the error propagates.
        """
        if not supplier_name or not supplier_name.strip():
            raise ValidationError("supplier_name", "is required")
        if not order_date:
            raise ValidationError("order_date", "is required")
        if not items:
            raise ValidationError("items", "at least one item is required")
        for i, line in enumerate(items):
            if not line.product_name or not line.product_name.strip():
                raise ValidationError(f"items.{i}.product_name", "is required")
            if line.quantity_ordered <= 0:
                raise ValidationError(
                    f"items.{i}.quantity_ordered", "must be greater than zero", line.quantity_ordered
                )
            if line.purchase_price_per_unit < 0:
                raise ValidationError(
                    f"items.{i}.purchase_price_per_unit",
                    "must not be negative",
                    line.purchase_price_per_unit,
                )

        total = sum(line.quantity_ordered * line.purchase_price_per_unit for line in items)
        order = Order(
            supplier_name=supplier_name.strip(),
            order_date=order_date,
            expected_delivery_date=expected_delivery_date,
            total_amount=total,
            amount_paid=0.0,
            balance_remaining=total,
            created_by=created_by,
        )
        record = await self._store.create(Collection.ORDERS.table, order.to_fields())
        order = Order.from_record(record)

        created: list[OrderItem] = []
        try:
            for line in items:
                item = OrderItem(
                    order_id=order.id,  # type: ignore[arg-type]
                    product_name=line.product_name.strip(),
                    quantity_ordered=line.quantity_ordered,
                    purchase_price_per_unit=line.purchase_price_per_unit,
                    branch_destination_id=line.branch_destination_id,
                )
                record = await self._store.create(Collection.ORDER_ITEMS.table, item.to_fields())
                created.append(OrderItem.from_record(record))
        except StoreError as e:
            logger.error("order_create_failed", order_id=order.id, items_written=len(created), error=str(e))
            await self._discard(order, created)
            raise

        logger.info(
            "order_created",
            order_id=order.id,
            supplier_name=order.supplier_name,
            items=len(created),
            total_amount=total,
        )
        return OrderWithItems(order=order, items=created)

    async def get_order(self, order_id: str) -> OrderWithItems:
        order = await self._load_order(order_id)
        return OrderWithItems(order=order, items=await self._order_items(order_id))

    async def list_orders(self, status: OrderStatus | None = None) -> list[Order]:
        records = await self._store.find(
            Collection.ORDERS.table,
            Eq("status", status.value) if status else None,
            sort=[SortSpec("created_at", "desc")],
        )
        orders = []
        for record in records:
            try:
                orders.append(Order.from_record(record))
            except PydanticValidationError as e:
                logger.warning("order_record_skipped", record_id=record.get("id"), error=str(e))
        return orders

    async def delete_order(self, order_id: str) -> None:
        """Delete an order and its lines. Stock already booked stays."""
        await self._load_order(order_id)
        for item in await self._order_items(order_id):
            await self._store.delete(Collection.ORDER_ITEMS.table, item.id)  # type: ignore[arg-type]
        await self._store.delete(Collection.ORDERS.table, order_id)
        logger.info("order_deleted", order_id=order_id)

    async def update_order(
        self,
        order_id: str,
        supplier_name: str | None = None,
        expected_delivery_date: date | None = None,
    ) -> Order:
        """Change the supplier or expected delivery date of an open order."""
        order = await self._load_order(order_id)
        self._ensure_open(order)

        fields: dict[str, Any] = {}
        if supplier_name is not None:
            if not supplier_name.strip():
                raise ValidationError("supplier_name", "must not be blank")
            fields["supplier_name"] = supplier_name.strip()
        if expected_delivery_date is not None:
            fields["expected_delivery_date"] = expected_delivery_date.isoformat()
        if not fields:
            return order

        record = await self._store.update(Collection.ORDERS.table, order_id, fields)
        logger.info("order_updated", order_id=order_id, fields=sorted(fields))
        return Order.from_record(record)

    async def approve_order(self, order_id: str, approver_id: str | None) -> Order:
        return await self._decide(order_id, ApprovalStatus.APPROVED, approver_id)

    async def reject_order(
        self, order_id: str, approver_id: str | None, reason: str | None = None
    ) -> Order:
        return await self._decide(order_id, ApprovalStatus.REJECTED, approver_id, reason)

    # Payments

    async def record_order_payment(self, order_id: str, amount: float) -> Order:
        """
        Add a payment to an order.

        Status becomes paid once the balance reaches zero, partially_paid
        while something is still owed.
        """
        if amount is None or amount <= 0:
            raise ValidationError("amount", "must be greater than zero", amount)

        order = await self._load_order(order_id)
        if order.is_closed:
            current = (
                order.approval_status.value
                if order.approval_status == ApprovalStatus.REJECTED
                else order.status.value
            )
            raise InvalidStateError("Order", order_id, current, "open")

        amount_paid = order.amount_paid + amount
        balance = order.total_amount - amount_paid
        if balance <= 0:
            status = OrderStatus.PAID
        elif amount_paid > 0:
            status = OrderStatus.PARTIALLY_PAID
        else:
            status = order.status

        record = await self._store.update(
            Collection.ORDERS.table,
            order_id,
            {
                "amount_paid": amount_paid,
                "balance_remaining": max(0.0, balance),
                "status": status.value,
            },
        )
        updated = Order.from_record(record)
        logger.info(
            "order_payment_recorded",
            order_id=order_id,
            amount=amount,
            amount_paid=amount_paid,
            balance_remaining=updated.balance_remaining,
            status=status.value,
        )
        return updated

    # Goods receipt

    async def receive_order_items(
        self,
        order_id: str,
        receiving_branch_id: str,
        receive_date: date,
        items: list[ReceiveLine],
        received_by: str | None = None,
        notes: str | None = None,
        receive_id: str | None = None,
    ) -> ReceiveResult:
        """
        Record goods arriving against an order.

        Good-condition lines enter stock at the receiving branch through a
        completed purchase_receive movement. Damaged, expired and missing
        lines are recorded but never stocked.

        A store failure stops the batch with a PartialBatchError whose
        details carry the ``receive_id``. Passing that id back with the same
        lines resumes the receive: lines already recorded on it come back
        already_applied and only the rest are booked.
        """
        if not receiving_branch_id:
            raise ValidationError("receiving_branch_id", "is required")
        if not receive_date:
            raise ValidationError("receive_date", "is required")
        if not items:
            raise ValidationError("items", "at least one item is required")

        order = await self._load_order(order_id)
        self._ensure_open(order)
        order_items = await self._order_items(order_id)

        if receive_id:
            receive = await self._load_receive(receive_id)
            if receive.order_id != order_id:
                raise ValidationError("receive_id", f"belongs to order {receive.order_id}", receive_id)
            recorded = await self._receive_items(receive_id)
            earlier = await self._ledger.list_movements(receive_id=receive_id)
        else:
            receive = PurchaseReceive(
                order_id=order_id,
                receiving_branch_id=receiving_branch_id,
                receive_date=receive_date,
                received_by=received_by,
                notes=notes,
            )
            record = await self._store.create(Collection.PURCHASE_RECEIVES.table, receive.to_fields())
            receive = PurchaseReceive.from_record(record)
            recorded, earlier = [], []

        seen = Counter(
            _receive_key(r.product_name, r.quantity_received, r.condition) for r in recorded
        )
        # Movements an interruption left without a receive line
        linked = {r.movement_id for r in recorded if r.movement_id}
        leftover: dict[tuple[str, int], list[Movement]] = {}
        for m in earlier:
            if m.id not in linked and m.status != MovementStatus.REJECTED:
                leftover.setdefault((normalize_product_name(m.product_name), m.quantity), []).append(m)

        result = BatchResult()
        received: list[ReceiveItem] = list(recorded)
        interrupted: StoreError | None = None

        for i, line in enumerate(items):
            name = (line.product_name or "").strip()
            if not name or line.quantity_received <= 0:
                result.add(
                    name or f"item {i}",
                    ItemOutcome.SKIPPED,
                    error="product_name and a positive quantity_received are required",
                )
                continue

            key = _receive_key(name, line.quantity_received, line.condition)
            if seen[key] > 0:
                seen[key] -= 1
                result.add(name, ItemOutcome.ALREADY_APPLIED)
                continue

            matched = self._match_item(order_items, name, line.order_item_id)
            pending = None
            if line.condition == ItemCondition.GOOD:
                pending = leftover.get((normalize_product_name(name), line.quantity_received))
            try:
                receive_item = await self._receive_line(
                    order, receive, line, name, matched, pending.pop(0) if pending else None
                )
            except StoreError as e:
                result.add(name, ItemOutcome.FAILED, error=str(e))
                for rest in items[i + 1 :]:
                    result.add(rest.product_name or "", ItemOutcome.NOT_ATTEMPTED)
                interrupted = e
                break

            received.append(receive_item)
            result.add(
                name,
                ItemOutcome.APPLIED,
                record_id=receive_item.id,
                data={"condition": line.condition.value, "stocked": line.condition == ItemCondition.GOOD},
            )

        if interrupted is not None:
            logger.error(
                "order_receive_interrupted",
                order_id=order_id,
                receive_id=receive.id,
                applied=len(result.applied),
                error=str(interrupted),
            )
            try:
                await self._write_receive_totals(receive, received, complete=False)
                await self._sync_received(order_id)
            except StoreError as e:
                logger.warning("receive_totals_write_failed", receive_id=receive.id, error=str(e))
            raise PartialBatchError(
                "receive_order_items",
                result,
                reason=str(interrupted),
                context={"receive_id": receive.id},
            ) from interrupted

        receive = await self._write_receive_totals(receive, received, complete=True)
        order_items = await self._sync_received(order_id)

        refreshed = OrderWithItems(order=order, items=order_items)
        status = OrderStatus.RECEIVED if refreshed.fully_received else OrderStatus.DELIVERED
        record = await self._store.update(Collection.ORDERS.table, order_id, {"status": status.value})
        order = Order.from_record(record)

        logger.info(
            "order_items_received",
            order_id=order_id,
            receive_id=receive.id,
            items=len(received),
            quantity=receive.total_quantity_received,
            receive_status=receive.receive_status.value,
            order_status=status.value,
        )
        return ReceiveResult(order=order, receive=receive, items=received, result=result)

    async def get_receive(self, receive_id: str) -> ReceiveWithItems:
        receive = await self._load_receive(receive_id)
        return ReceiveWithItems(receive=receive, items=await self._receive_items(receive_id))

    async def list_receives(
        self, order_id: str | None = None, branch_id: str | None = None
    ) -> list[PurchaseReceive]:
        """Receives, oldest first, optionally limited to one order or receiving branch."""
        records = await self._store.find(
            Collection.PURCHASE_RECEIVES.table,
            all_of(
                ArrayContains("order_id", order_id) if order_id else None,
                ArrayContains("receiving_branch_id", branch_id) if branch_id else None,
            ),
            sort=[SortSpec("created_at")],
        )
        receives = []
        for record in records:
            if order_id and not has_link(record, "order_id", order_id):
                continue
            if branch_id and not has_link(record, "receiving_branch_id", branch_id):
                continue
            try:
                receives.append(PurchaseReceive.from_record(record))
            except PydanticValidationError as e:
                logger.warning("receive_record_skipped", record_id=record.get("id"), error=str(e))
        return receives

    async def delete_receive(self, receive_id: str) -> None:
        """
        Delete a receive and its lines.

        Stock already booked stays; the order's received quantities are
        recounted from the receives that remain.
        """
        receive = await self._load_receive(receive_id)
        for item in await self._receive_items(receive_id):
            await self._store.delete(Collection.RECEIVE_ITEMS.table, item.id)  # type: ignore[arg-type]
        await self._store.delete(Collection.PURCHASE_RECEIVES.table, receive_id)
        await self._sync_received(receive.order_id)
        logger.info("receive_deleted", receive_id=receive_id, order_id=receive.order_id)

    # Completion

    async def complete_order(
        self,
        order_id: str,
        items: list[CompletionLine] | None = None,
        completed_by: str | None = None,
    ) -> CompletionResult:
        """
        Force-complete an order, booking each line into its destination branch.

        ``items`` defaults to the order's own lines. Lines without a
        destination branch or with a non-positive quantity are skipped. Any
        outstanding balance is reconciled as paid.

        Raises:
            InvalidStateError: order already completed or rejected
            PartialBatchError: a store failure stopped the batch; the order
                stays open so the call can be repeated
        """
        order = await self._load_order(order_id)
        self._ensure_open(order)

        order_items = await self._order_items(order_id)
        if items is None:
            items = [
                CompletionLine(
                    product_name=i.product_name,
                    quantity=i.quantity_ordered,
                    branch_destination_id=i.branch_destination_id,
                    unit_cost=i.purchase_price_per_unit,
                )
                for i in order_items
            ]

        # Lines booked by an earlier call: completed ones are done, pending
        # ones were interrupted after their row was written and are finished
        # by approving them
        done: Counter[tuple[str, str, int]] = Counter()
        unfinished: dict[tuple[str, str, int], list[Movement]] = {}
        for m in await self._ledger.list_movements(
            order_id=order_id, movement_type=MovementType.PURCHASE_ORDER
        ):
            if not m.to_branch_id:
                continue
            key = _completion_key(m.to_branch_id, m.product_name, m.quantity)
            if m.is_completed:
                done[key] += 1
            elif m.is_pending:
                unfinished.setdefault(key, []).append(m)

        result = BatchResult()
        receipts: list[TransferReceipt] = []

        for i, line in enumerate(items):
            name = (line.product_name or "").strip()
            error = self._completion_line_error(line, name)
            if error:
                result.add(name or f"item {i}", ItemOutcome.SKIPPED, error=error)
                continue

            key = _completion_key(line.branch_destination_id, name, line.quantity)  # type: ignore[arg-type]
            if done[key] > 0:
                done[key] -= 1
                result.add(name, ItemOutcome.ALREADY_APPLIED)
                continue

            unit_cost = line.unit_cost
            if unit_cost is None:
                matched = self._match_item(order_items, name, None)
                unit_cost = matched.purchase_price_per_unit if matched else 0.0

            try:
                if unfinished.get(key):
                    movement = await self._ledger.approve_movement(
                        unfinished[key].pop(0).id, completed_by  # type: ignore[arg-type]
                    )
                else:
                    movement = await self._ledger.record_movement(
                        Movement(
                            movement_type=MovementType.PURCHASE_ORDER,
                            product_name=name,
                            quantity=line.quantity,
                            to_branch_id=line.branch_destination_id,
                            unit_cost=unit_cost,
                            order_id=order_id,
                            reason=f"Order {order_id} completed",
                            requested_by=completed_by,
                            transfer_date=date.today(),
                        ),
                        actor_id=completed_by,
                    )
            except StoreError as e:
                result.add(name, ItemOutcome.FAILED, error=str(e))
                for rest in items[i + 1 :]:
                    result.add(rest.product_name or "", ItemOutcome.NOT_ATTEMPTED)
                logger.error(
                    "order_completion_interrupted",
                    order_id=order_id,
                    applied=len(result.applied),
                    error=str(e),
                )
                raise PartialBatchError("complete_order", result, reason=str(e)) from e

            receipt = await self._write_receipt(order_id, movement, unit_cost)
            if receipt is not None:
                receipts.append(receipt)
            result.add(
                name,
                ItemOutcome.APPLIED,
                record_id=movement.id,
                data={"receipt_id": receipt.id if receipt else None},
            )

        fields: dict[str, Any] = {
            "status": OrderStatus.COMPLETED.value,
            "completed_at": utcnow().isoformat(),
        }
        if order.balance_remaining > 0:
            fields["amount_paid"] = order.total_amount
            fields["balance_remaining"] = 0.0
            logger.info(
                "order_payment_reconciled",
                order_id=order_id,
                written_off=order.balance_remaining,
            )
        record = await self._store.update(Collection.ORDERS.table, order_id, fields)
        order = Order.from_record(record)

        logger.info(
            "order_completed",
            order_id=order_id,
            applied=len([r for r in result.items if r.outcome == ItemOutcome.APPLIED]),
            skipped=len(result.skipped),
            outcome=result.outcome.value,
        )
        return CompletionResult(order=order, receipts=receipts, result=result)

    # Helpers

    async def _load_order(self, order_id: str) -> Order:
        try:
            record = await self._store.find_by_id(Collection.ORDERS.table, order_id)
        except RecordNotFoundError as e:
            raise OrderNotFoundError(order_id) from e
        return Order.from_record(record)

    async def _order_items(self, order_id: str) -> list[OrderItem]:
        records = await self._store.find(
            Collection.ORDER_ITEMS.table, ArrayContains("order_id", order_id)
        )
        items = []
        for record in records:
            if not has_link(record, "order_id", order_id):
                continue
            try:
                items.append(OrderItem.from_record(record))
            except PydanticValidationError as e:
                logger.warning("order_item_record_skipped", record_id=record.get("id"), error=str(e))
        return items

    async def _decide(
        self,
        order_id: str,
        decision: ApprovalStatus,
        approver_id: str | None,
        reason: str | None = None,
    ) -> Order:
        order = await self._load_order(order_id)
        if order.approval_status != ApprovalStatus.DRAFT:
            raise InvalidStateError(
                "Order", order_id, order.approval_status.value, ApprovalStatus.DRAFT.value
            )

        fields: dict[str, Any] = {
            "approval_status": decision.value,
            "approved_at": utcnow().isoformat(),
        }
        if approver_id:
            fields["approved_by"] = [approver_id]
        if reason:
            fields["rejection_reason"] = reason
        record = await self._store.update(Collection.ORDERS.table, order_id, fields)

        logger.info(
            "order_decided",
            order_id=order_id,
            approval_status=decision.value,
            approved_by=approver_id,
        )
        return Order.from_record(record)

    @staticmethod
    def _ensure_open(order: Order) -> None:
        if order.approval_status == ApprovalStatus.REJECTED:
            raise InvalidStateError(
                "Order",
                order.id or "",
                ApprovalStatus.REJECTED.value,
                [ApprovalStatus.DRAFT.value, ApprovalStatus.APPROVED.value],
            )
        if order.status == OrderStatus.COMPLETED:
            raise InvalidStateError("Order", order.id or "", OrderStatus.COMPLETED.value, "open")

    @staticmethod
    def _match_item(
        order_items: list[OrderItem], product_name: str, order_item_id: str | None
    ) -> OrderItem | None:
        """Order line a received product belongs to, preferring one still owed."""
        if order_item_id:
            return next((i for i in order_items if i.id == order_item_id), None)
        wanted = normalize_product_name(product_name)
        candidates = [i for i in order_items if normalize_product_name(i.product_name) == wanted]
        return next((i for i in candidates if i.outstanding > 0), candidates[0] if candidates else None)

    @staticmethod
    def _completion_line_error(line: CompletionLine, name: str) -> str | None:
        if not name:
            return "product_name is required"
        if not line.branch_destination_id:
            return "branch_destination_id is required"
        if line.quantity <= 0:
            return "quantity must be greater than zero"
        return None

    async def _receive_line(
        self,
        order: Order,
        receive: PurchaseReceive,
        line: ReceiveLine,
        name: str,
        matched: OrderItem | None,
        pending: Movement | None = None,
    ) -> ReceiveItem:
        """
        Book one received line: stock movement first, then the receive line
        that points at it. ``pending`` is a movement an earlier interrupted
        call left behind for this line; it is finished instead of booking a
        new one.
        """
        quantity_ordered = line.quantity_ordered
        if quantity_ordered is None:
            quantity_ordered = matched.quantity_ordered if matched else line.quantity_received

        movement_id = None
        if line.condition == ItemCondition.GOOD:
            if pending is not None:
                movement = await self._ledger.approve_movement(
                    pending.id, receive.received_by  # type: ignore[arg-type]
                )
            else:
                movement = await self._ledger.record_movement(
                    Movement(
                        movement_type=MovementType.PURCHASE_RECEIVE,
                        product_name=name,
                        quantity=line.quantity_received,
                        to_branch_id=receive.receiving_branch_id,
                        unit_cost=line.unit_cost,
                        order_id=order.id,
                        receive_id=receive.id,
                        requested_by=receive.received_by,
                        reason=f"Goods received from PO #{order.id}",
                        transfer_date=receive.receive_date,
                    ),
                    actor_id=receive.received_by,
                )
            movement_id = movement.id
            if matched is not None:
                matched.quantity_received += line.quantity_received
        else:
            logger.info(
                "receive_item_not_stocked",
                receive_id=receive.id,
                product_name=name,
                condition=line.condition.value,
            )

        item = ReceiveItem(
            receive_id=receive.id,  # type: ignore[arg-type]
            order_item_id=matched.id if matched else None,
            product_name=name,
            quantity_ordered=quantity_ordered,
            quantity_received=line.quantity_received,
            unit_cost=line.unit_cost,
            condition=line.condition,
            notes=line.notes,
            movement_id=movement_id,
        )
        record = await self._store.create(Collection.RECEIVE_ITEMS.table, item.to_fields())
        return ReceiveItem.from_record(record)

    async def _load_receive(self, receive_id: str) -> PurchaseReceive:
        try:
            record = await self._store.find_by_id(Collection.PURCHASE_RECEIVES.table, receive_id)
        except RecordNotFoundError as e:
            raise ReceiveNotFoundError(receive_id) from e
        return PurchaseReceive.from_record(record)

    async def _receive_items(self, receive_id: str) -> list[ReceiveItem]:
        records = await self._store.find(
            Collection.RECEIVE_ITEMS.table, ArrayContains("receive_id", receive_id)
        )
        return [
            ReceiveItem.from_record(r) for r in records if has_link(r, "receive_id", receive_id)
        ]

    async def _write_receive_totals(
        self, receive: PurchaseReceive, received: list[ReceiveItem], complete: bool
    ) -> PurchaseReceive:
        total_received = sum(r.quantity_received for r in received)
        total_ordered = sum(r.quantity_ordered for r in received)
        finished = complete and total_received >= total_ordered
        record = await self._store.update(
            Collection.PURCHASE_RECEIVES.table,
            receive.id,  # type: ignore[arg-type]
            {
                "total_items": len(received),
                "total_quantity_received": total_received,
                "total_quantity_ordered": total_ordered,
                "receive_status": (
                    ReceiveStatus.COMPLETE if finished else ReceiveStatus.PARTIAL
                ).value,
            },
        )
        return PurchaseReceive.from_record(record)

    async def _sync_received(self, order_id: str) -> list[OrderItem]:
        """Recount each order line's quantity_received from the good lines of its receives."""
        totals: Counter[str] = Counter()
        for receive in await self.list_receives(order_id=order_id):
            for r in await self._receive_items(receive.id):  # type: ignore[arg-type]
                if r.order_item_id and r.condition == ItemCondition.GOOD:
                    totals[r.order_item_id] += r.quantity_received

        synced = []
        for item in await self._order_items(order_id):
            if item.quantity_received != totals[item.id]:  # type: ignore[index]
                record = await self._store.update(
                    Collection.ORDER_ITEMS.table,
                    item.id,  # type: ignore[arg-type]
                    {"quantity_received": totals[item.id]},  # type: ignore[index]
                )
                item = OrderItem.from_record(record)
            synced.append(item)
        return synced

    async def _write_receipt(
        self, order_id: str, movement: Movement, unit_cost: float
    ) -> TransferReceipt | None:
        """Receipt row for a completed line. Stock is already booked, so a failure here is logged, not raised."""
        receipt = TransferReceipt(
            order_id=order_id,
            branch_id=movement.to_branch_id,  # type: ignore[arg-type]
            product_name=movement.product_name,
            quantity=movement.quantity,
            unit_cost=unit_cost,
            movement_id=movement.id,
        )
        try:
            record = await self._store.create(Collection.TRANSFER_RECEIPTS.table, receipt.to_fields())
        except StoreError as e:
            logger.error(
                "transfer_receipt_failed",
                order_id=order_id,
                movement_id=movement.id,
                error=str(e),
            )
            return None
        return TransferReceipt.from_record(record)

    async def _discard(self, order: Order, items: list[OrderItem]) -> None:
        """Best-effort removal of an order header and its lines."""
        for item in items:
            try:
                await self._store.delete(Collection.ORDER_ITEMS.table, item.id)  # type: ignore[arg-type]
            except StoreError as e:
                logger.warning("order_item_delete_failed", order_item_id=item.id, error=str(e))
        try:
            await self._store.delete(Collection.ORDERS.table, order.id)  # type: ignore[arg-type]
        except StoreError as e:
            logger.warning("order_delete_failed", order_id=order.id, error=str(e))
