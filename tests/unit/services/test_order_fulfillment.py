"""Tests for OrderFulfillment."""

from datetime import date

import pytest

from stockledger.core.entities import (
    ApprovalStatus,
    BatchOutcome,
    Collection,
    ItemCondition,
    ItemOutcome,
    MovementStatus,
    MovementType,
    OrderStatus,
    ReceiveStatus,
)
from stockledger.core.exceptions import (
    InvalidStateError,
    OrderNotFoundError,
    PartialBatchError,
    ReceiveNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from stockledger.core.services import CompletionLine, OrderFulfillment, OrderLine, ReceiveLine

ORDER_DATE = date(2024, 3, 1)


@pytest.fixture
def orders(ledger) -> OrderFulfillment:
    return ledger.orders


@pytest.fixture
async def order(orders):
    """Two lines bound for branch bA, one without a destination."""
    return await orders.create_order(
        "Acme Foods",
        ORDER_DATE,
        [
            OrderLine("Rice", 10, 5.0, "bA"),
            OrderLine("Beans", 5, 20.0, "bA"),
            OrderLine("Salt", 2, 0.0, None),
        ],
        created_by="usr1",
    )


class TestCreateOrder:
    async def test_creates_draft_with_totals(self, order):
        assert order.order.approval_status == ApprovalStatus.DRAFT
        assert order.order.status == OrderStatus.ORDERED
        assert order.order.total_amount == 150.0
        assert order.order.balance_remaining == 150.0
        assert order.order.created_by == "usr1"
        assert [i.product_name for i in order.items] == ["Rice", "Beans", "Salt"]
        assert all(i.order_id == order.order.id for i in order.items)

    @pytest.mark.parametrize(
        "supplier,items",
        [
            ("", [OrderLine("Rice", 1)]),
            ("Acme", []),
            ("Acme", [OrderLine(" ", 1)]),
            ("Acme", [OrderLine("Rice", 0)]),
            ("Acme", [OrderLine("Rice", 1, -1.0)]),
        ],
    )
    async def test_validation(self, orders, supplier, items):
        with pytest.raises(ValidationError):
            await orders.create_order(supplier, ORDER_DATE, items)

    async def test_item_failure_discards_order(self, orders, store):
        store.fail_on = lambda op, collection, subject: (
            op == "create"
            and collection == Collection.ORDER_ITEMS.table
            and subject.get("product_name") == "Beans"
        )

        with pytest.raises(StoreUnavailableError):
            await orders.create_order(
                "Acme", ORDER_DATE, [OrderLine("Rice", 1), OrderLine("Beans", 1)]
            )

        assert store.all(Collection.ORDERS.table) == []
        assert store.all(Collection.ORDER_ITEMS.table) == []


class TestOrderQueries:
    async def test_get_order(self, orders, order):
        loaded = await orders.get_order(order.order.id)
        assert loaded.order.supplier_name == "Acme Foods"
        assert len(loaded.items) == 3

    async def test_get_missing(self, orders):
        with pytest.raises(OrderNotFoundError):
            await orders.get_order("recMissing")

    async def test_list_orders_by_status(self, orders, order):
        other = await orders.create_order("Beta", ORDER_DATE, [OrderLine("Rice", 1, 10.0)])
        await orders.record_order_payment(other.order.id, 10.0)

        paid = await orders.list_orders(OrderStatus.PAID)
        everything = await orders.list_orders()

        assert [o.id for o in paid] == [other.order.id]
        assert len(everything) == 2

    async def test_delete_order_removes_items(self, orders, order, store):
        await orders.delete_order(order.order.id)

        assert store.all(Collection.ORDERS.table) == []
        assert store.all(Collection.ORDER_ITEMS.table) == []

    async def test_delete_missing(self, orders):
        with pytest.raises(OrderNotFoundError):
            await orders.delete_order("recMissing")


class TestApproval:
    async def test_approve(self, orders, order):
        approved = await orders.approve_order(order.order.id, "mgr1")
        assert approved.approval_status == ApprovalStatus.APPROVED
        assert approved.approved_by == "mgr1"

    async def test_reject_records_reason(self, orders, order):
        rejected = await orders.reject_order(order.order.id, "mgr1", "too expensive")
        assert rejected.approval_status == ApprovalStatus.REJECTED
        assert rejected.rejection_reason == "too expensive"

    async def test_decision_only_from_draft(self, orders, order):
        await orders.approve_order(order.order.id, "mgr1")
        with pytest.raises(InvalidStateError):
            await orders.reject_order(order.order.id, "mgr1")


class TestPayments:
    async def test_partial_then_full(self, orders):
        created = await orders.create_order("Acme", ORDER_DATE, [OrderLine("Rice", 100, 10.0)])
        order_id = created.order.id

        first = await orders.record_order_payment(order_id, 400)
        assert first.status == OrderStatus.PARTIALLY_PAID
        assert first.amount_paid == 400
        assert first.balance_remaining == 600

        second = await orders.record_order_payment(order_id, 600)
        assert second.status == OrderStatus.PAID
        assert second.balance_remaining == 0

    async def test_overpayment_floors_balance(self, orders):
        created = await orders.create_order("Acme", ORDER_DATE, [OrderLine("Rice", 1, 10.0)])

        paid = await orders.record_order_payment(created.order.id, 25)

        assert paid.status == OrderStatus.PAID
        assert paid.amount_paid == 25
        assert paid.balance_remaining == 0

    @pytest.mark.parametrize("amount", [0, -5])
    async def test_amount_must_be_positive(self, orders, order, amount):
        with pytest.raises(ValidationError):
            await orders.record_order_payment(order.order.id, amount)

    async def test_rejected_order_refuses_payment(self, orders, order):
        await orders.reject_order(order.order.id, "mgr1")
        with pytest.raises(InvalidStateError):
            await orders.record_order_payment(order.order.id, 10)


class TestReceive:
    async def test_good_items_stocked_damaged_recorded(self, orders, order, ledger, stock_of):
        received = await orders.receive_order_items(
            order.order.id,
            "bA",
            date(2024, 3, 5),
            [
                ReceiveLine("Rice", 6, unit_cost=5.0),
                ReceiveLine("Beans", 5, unit_cost=20.0, condition=ItemCondition.DAMAGED),
            ],
            received_by="usr2",
        )

        assert received.result.outcome == BatchOutcome.APPLIED
        assert [i.data["stocked"] for i in received.result.items] == [True, False]
        assert stock_of("bA", "Rice") == 6
        assert stock_of("bA", "Beans") is None
        assert received.receive.receive_status == ReceiveStatus.PARTIAL
        assert received.receive.total_quantity_received == 11
        assert received.order.status == OrderStatus.DELIVERED

        movements = await ledger.movements.list_movements(order_id=order.order.id)
        assert len(movements) == 1
        assert movements[0].movement_type == MovementType.PURCHASE_RECEIVE
        assert movements[0].status == MovementStatus.COMPLETED
        assert movements[0].receive_id == received.receive.id
        assert movements[0].reason == f"Goods received from PO #{order.order.id}"

    async def test_fully_received_order(self, orders, order):
        await orders.receive_order_items(
            order.order.id, "bA", date(2024, 3, 5), [ReceiveLine("Rice", 6)]
        )

        received = await orders.receive_order_items(
            order.order.id,
            "bA",
            date(2024, 3, 6),
            [ReceiveLine("Rice", 4), ReceiveLine("Beans", 5), ReceiveLine("Salt", 2)],
        )

        assert received.order.status == OrderStatus.RECEIVED
        items = (await orders.get_order(order.order.id)).items
        assert {i.product_name: i.quantity_received for i in items} == {
            "Rice": 10,
            "Beans": 5,
            "Salt": 2,
        }
        assert len(await orders.list_receives(order.order.id)) == 2

    async def test_invalid_lines_skipped(self, orders, order, stock_of):
        received = await orders.receive_order_items(
            order.order.id,
            "bA",
            date(2024, 3, 5),
            [ReceiveLine("", 3), ReceiveLine("Rice", 0), ReceiveLine("Rice", 2)],
        )

        assert [i.outcome for i in received.result.items] == [
            ItemOutcome.SKIPPED,
            ItemOutcome.SKIPPED,
            ItemOutcome.APPLIED,
        ]
        assert stock_of("bA", "Rice") == 2

    async def test_rejected_order_refuses_receipt(self, orders, order):
        await orders.reject_order(order.order.id, "mgr1")
        with pytest.raises(InvalidStateError):
            await orders.receive_order_items(
                order.order.id, "bA", date(2024, 3, 5), [ReceiveLine("Rice", 1)]
            )

    async def test_requires_branch(self, orders, order):
        with pytest.raises(ValidationError):
            await orders.receive_order_items(
                order.order.id, "", date(2024, 3, 5), [ReceiveLine("Rice", 1)]
            )

    async def test_interrupted_receive_writes_totals_and_resumes(
        self, orders, order, ledger, store, stock_of
    ):
        lines = [ReceiveLine("Rice", 6, unit_cost=5.0), ReceiveLine("Beans", 5, unit_cost=20.0)]
        # Beans stock is booked, then its receive line fails to write
        store.fail_on = lambda op, collection, subject: (
            op == "create"
            and collection == Collection.RECEIVE_ITEMS.table
            and subject.get("product_name") == "Beans"
        )

        with pytest.raises(PartialBatchError) as exc:
            await orders.receive_order_items(order.order.id, "bA", date(2024, 3, 5), lines)

        receive_id = exc.value.details["receive_id"]
        interrupted = (await orders.get_receive(receive_id)).receive
        assert interrupted.total_items == 1
        assert interrupted.total_quantity_received == 6
        assert interrupted.receive_status == ReceiveStatus.PARTIAL
        assert stock_of("bA", "Beans") == 5

        store.fail_on = None
        resumed = await orders.receive_order_items(
            order.order.id, "bA", date(2024, 3, 5), lines, receive_id=receive_id
        )

        assert [i.outcome for i in resumed.result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
        ]
        assert stock_of("bA", "Rice") == 6
        assert stock_of("bA", "Beans") == 5
        assert resumed.receive.id == receive_id
        assert resumed.receive.total_items == 2
        assert resumed.receive.total_quantity_received == 11
        assert len(await ledger.movements.list_movements(receive_id=receive_id)) == 2
        items = (await orders.get_order(order.order.id)).items
        assert {i.product_name: i.quantity_received for i in items} == {
            "Rice": 6,
            "Beans": 5,
            "Salt": 0,
        }

    async def test_resume_finishes_pending_stock_movement(self, orders, order, store, stock_of):
        lines = [ReceiveLine("Rice", 6), ReceiveLine("Beans", 5)]
        store.fail_on = lambda op, collection, subject: (
            op == "create"
            and collection == Collection.STOCK.table
            and subject.get("product_name") == "Beans"
        )

        with pytest.raises(PartialBatchError) as exc:
            await orders.receive_order_items(order.order.id, "bA", date(2024, 3, 5), lines)
        assert stock_of("bA", "Beans") is None

        store.fail_on = None
        resumed = await orders.receive_order_items(
            order.order.id,
            "bA",
            date(2024, 3, 5),
            lines,
            receive_id=exc.value.details["receive_id"],
        )

        assert [i.outcome for i in resumed.result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
        ]
        assert stock_of("bA", "Rice") == 6
        assert stock_of("bA", "Beans") == 5
        assert all(
            r["status"] == MovementStatus.COMPLETED.value
            for r in store.all(Collection.MOVEMENTS.table)
        )

    async def test_resume_rejects_receive_of_other_order(self, orders, order):
        other = await orders.create_order("Beta", ORDER_DATE, [OrderLine("Rice", 1)])
        first = await orders.receive_order_items(
            other.order.id, "bA", date(2024, 3, 5), [ReceiveLine("Rice", 1)]
        )

        with pytest.raises(ValidationError):
            await orders.receive_order_items(
                order.order.id,
                "bA",
                date(2024, 3, 5),
                [ReceiveLine("Rice", 1)],
                receive_id=first.receive.id,
            )


class TestReceiveRecords:
    async def test_get_receive_with_items(self, orders, order):
        received = await orders.receive_order_items(
            order.order.id,
            "bA",
            date(2024, 3, 5),
            [ReceiveLine("Rice", 4), ReceiveLine("Beans", 1, condition=ItemCondition.EXPIRED)],
        )

        detail = await orders.get_receive(received.receive.id)

        assert detail.receive.order_id == order.order.id
        assert [i.product_name for i in detail.items] == ["Rice", "Beans"]
        assert detail.items[0].movement_id is not None
        assert detail.items[1].movement_id is None
        assert detail.stocked_quantity == 4

    async def test_get_missing_receive(self, orders):
        with pytest.raises(ReceiveNotFoundError):
            await orders.get_receive("recMissing")

    async def test_list_receives_by_branch(self, orders, order):
        await orders.receive_order_items(
            order.order.id, "bA", date(2024, 3, 5), [ReceiveLine("Rice", 1)]
        )
        at_b = await orders.receive_order_items(
            order.order.id, "bB", date(2024, 3, 6), [ReceiveLine("Rice", 1)]
        )

        assert [r.id for r in await orders.list_receives(branch_id="bB")] == [at_b.receive.id]
        assert len(await orders.list_receives(order_id=order.order.id)) == 2
        assert len(await orders.list_receives()) == 2

    async def test_delete_receive_recounts_order_lines(self, orders, order, store, stock_of):
        kept = await orders.receive_order_items(
            order.order.id, "bA", date(2024, 3, 5), [ReceiveLine("Rice", 4)]
        )
        dropped = await orders.receive_order_items(
            order.order.id, "bA", date(2024, 3, 6), [ReceiveLine("Rice", 3)]
        )

        await orders.delete_receive(dropped.receive.id)

        assert [r.id for r in await orders.list_receives(order.order.id)] == [kept.receive.id]
        assert len(store.all(Collection.RECEIVE_ITEMS.table)) == 1
        rice = next(i for i in (await orders.get_order(order.order.id)).items if i.product_name == "Rice")
        assert rice.quantity_received == 4
        # booked stock is not reversed
        assert stock_of("bA", "Rice") == 7

    async def test_delete_missing_receive(self, orders):
        with pytest.raises(ReceiveNotFoundError):
            await orders.delete_receive("recMissing")


class TestUpdateOrder:
    async def test_updates_supplier_and_expected_date(self, orders, order):
        updated = await orders.update_order(
            order.order.id, supplier_name="  Acme Wholesale ", expected_delivery_date=date(2024, 4, 1)
        )

        assert updated.supplier_name == "Acme Wholesale"
        assert updated.expected_delivery_date == date(2024, 4, 1)
        assert updated.total_amount == 150.0

    async def test_nothing_to_change(self, orders, order):
        unchanged = await orders.update_order(order.order.id)
        assert unchanged.supplier_name == "Acme Foods"

    async def test_blank_supplier(self, orders, order):
        with pytest.raises(ValidationError):
            await orders.update_order(order.order.id, supplier_name="  ")

    async def test_closed_order_refused(self, orders, order):
        await orders.complete_order(order.order.id)
        with pytest.raises(InvalidStateError):
            await orders.update_order(order.order.id, supplier_name="Other")

    async def test_missing_order(self, orders):
        with pytest.raises(OrderNotFoundError):
            await orders.update_order("recMissing", supplier_name="Other")


class TestCompleteOrder:
    async def test_books_lines_and_reconciles_payment(self, orders, order, ledger, store, stock_of):
        await orders.record_order_payment(order.order.id, 50)

        completed = await orders.complete_order(order.order.id, completed_by="mgr1")

        assert completed.order.status == OrderStatus.COMPLETED
        assert completed.order.completed_at is not None
        assert completed.order.amount_paid == 150.0
        assert completed.order.balance_remaining == 0
        assert [i.outcome for i in completed.result.items] == [
            ItemOutcome.APPLIED,
            ItemOutcome.APPLIED,
            ItemOutcome.SKIPPED,
        ]
        assert stock_of("bA", "Rice") == 10
        assert stock_of("bA", "Beans") == 5
        assert (await ledger.stock.get("bA", "Beans")).unit_price == 20.0
        assert len(completed.receipts) == 2
        assert len(store.all(Collection.TRANSFER_RECEIPTS.table)) == 2

    async def test_explicit_lines(self, orders, order, stock_of):
        completed = await orders.complete_order(
            order.order.id,
            [CompletionLine("Rice", 3, "bB"), CompletionLine("Rice", 7, "bA", unit_cost=4.0)],
        )

        assert completed.result.outcome == BatchOutcome.APPLIED
        assert stock_of("bB", "Rice") == 3
        assert stock_of("bA", "Rice") == 7

    async def test_completed_order_is_closed(self, orders, order, stock_of):
        await orders.complete_order(order.order.id)

        with pytest.raises(InvalidStateError):
            await orders.complete_order(order.order.id)
        with pytest.raises(InvalidStateError):
            await orders.record_order_payment(order.order.id, 10)
        assert stock_of("bA", "Rice") == 10

    async def test_interrupted_completion_can_be_redriven(self, orders, order, store, stock_of):
        store.fail_on = lambda op, collection, subject: (
            op == "create"
            and collection == Collection.STOCK.table
            and subject.get("product_name") == "Beans"
        )

        with pytest.raises(PartialBatchError) as exc:
            await orders.complete_order(order.order.id)

        assert [i.outcome for i in exc.value.result.items] == [
            ItemOutcome.APPLIED,
            ItemOutcome.FAILED,
            ItemOutcome.NOT_ATTEMPTED,
        ]
        assert (await orders.get_order(order.order.id)).order.status == OrderStatus.ORDERED

        store.fail_on = None
        completed = await orders.complete_order(order.order.id)

        assert [i.outcome for i in completed.result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
            ItemOutcome.SKIPPED,
        ]
        assert stock_of("bA", "Rice") == 10
        assert stock_of("bA", "Beans") == 5
        assert completed.order.status == OrderStatus.COMPLETED

    async def test_redrive_after_movement_completion_write_failure(
        self, orders, order, store, stock_of
    ):
        store.fail_on = lambda op, collection, subject: (
            op == "update"
            and collection == Collection.MOVEMENTS.table
            and stock_of("bA", "Beans") == 5
        )

        with pytest.raises(PartialBatchError):
            await orders.complete_order(order.order.id)
        assert stock_of("bA", "Beans") == 5

        store.fail_on = None
        completed = await orders.complete_order(order.order.id)

        assert [i.outcome for i in completed.result.items] == [
            ItemOutcome.ALREADY_APPLIED,
            ItemOutcome.APPLIED,
            ItemOutcome.SKIPPED,
        ]
        assert stock_of("bA", "Rice") == 10
        assert stock_of("bA", "Beans") == 5
        assert len(completed.receipts) == 1

    async def test_movement_create_failure_books_nothing(self, orders, order, store, stock_of):
        store.fail_on = lambda op, collection, subject: (
            op == "create"
            and collection == Collection.MOVEMENTS.table
            and subject.get("product_name") == "Beans"
        )

        with pytest.raises(PartialBatchError):
            await orders.complete_order(order.order.id)
        assert stock_of("bA", "Beans") is None

        store.fail_on = None
        await orders.complete_order(order.order.id)

        assert stock_of("bA", "Rice") == 10
        assert stock_of("bA", "Beans") == 5
