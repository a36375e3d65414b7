"""
Service factory functions for dependency injection.

Wires the record store to the stock repository, the movement ledger and the
orchestrators, and exposes them behind one StockLedger facade.

Clean Architecture: Application layer orchestrates DI, not core layer.
"""

from datetime import date
from typing import TYPE_CHECKING

from stockledger.core.entities import (
    AdjustmentType,
    AdjustmentWithItems,
    BatchResult,
    InventoryAdjustment,
    Movement,
    MovementType,
    Order,
    OrderWithItems,
    PurchaseReceive,
    ReceiveWithItems,
    StockItem,
    Transfer,
)
from stockledger.core.services import (
    AdjustmentLine,
    CompletionLine,
    CompletionResult,
    InventoryAdjustments,
    MovementLedger,
    OrderFulfillment,
    OrderLine,
    ReceiveLine,
    ReceiveResult,
    StockRepository,
    TransferLine,
    TransferOrchestrator,
)

if TYPE_CHECKING:
    from stockledger.core.interfaces import IRecordStore


class StockLedger:
    """
    Single entry point over all stock operations.

    Every component shares one record store and one stock repository, so
    the per-key write lock covers every caller in the process.
    """

    def __init__(self, store: "IRecordStore", stock: StockRepository | None = None):
        self.store = store
        self.stock = stock or StockRepository(store)
        self.movements = MovementLedger(store, self.stock)
        self.transfers = TransferOrchestrator(self.movements)
        self.orders = OrderFulfillment(store, self.movements)
        self.adjustments = InventoryAdjustments(store, self.movements)

    # Stock

    async def query_stock(
        self, branch_id: str | None = None, product_name: str | None = None
    ) -> list[StockItem]:
        return await self.stock.query(branch_id=branch_id, product_name=product_name)

    async def low_stock(self, branch_id: str | None = None) -> list[StockItem]:
        return await self.stock.low_stock(branch_id)

    async def create_stock(
        self,
        branch_id: str,
        product_name: str,
        quantity: int = 0,
        unit_price: float = 0.0,
        reorder_level: int | None = None,
        product_id: str | None = None,
    ) -> StockItem:
        return await self.stock.create_record(
            branch_id,
            product_name,
            quantity,
            unit_price,
            reorder_level=reorder_level,
            product_id=product_id,
        )

    async def update_stock(self, stock_id: str, **details) -> StockItem:
        """Edit name, product id, price or reorder level. Never the quantity."""
        return await self.stock.update_details(stock_id, **details)

    # Movements

    async def create_movement(
        self, movement_type: MovementType | str, product_name: str, quantity: int, **kwargs
    ) -> Movement:
        return await self.movements.create_movement(
            movement_type, product_name, quantity, **kwargs
        )

    async def approve_movement(self, movement_id: str, approver_id: str | None) -> Movement:
        return await self.movements.approve_movement(movement_id, approver_id)

    async def reject_movement(
        self, movement_id: str, approver_id: str | None, reason: str | None = None
    ) -> Movement:
        return await self.movements.reject_movement(movement_id, approver_id, reason)

    # Transfers

    async def initiate_transfer(
        self,
        from_branch_id: str,
        to_branch_id: str,
        items: list[TransferLine],
        reason: str | None = None,
        requested_by: str | None = None,
    ) -> Transfer:
        return await self.transfers.initiate_transfer(
            from_branch_id, to_branch_id, items, reason=reason, requested_by=requested_by
        )

    async def approve_transfer(self, transfer_id: str, approver_id: str | None) -> BatchResult:
        return await self.transfers.approve_transfer(transfer_id, approver_id)

    async def reject_transfer(
        self, transfer_id: str, approver_id: str | None, reason: str | None = None
    ) -> BatchResult:
        return await self.transfers.reject_transfer(transfer_id, approver_id, reason)

    # Orders

    async def create_order(
        self,
        supplier_name: str,
        order_date: date,
        items: list[OrderLine],
        expected_delivery_date: date | None = None,
        created_by: str | None = None,
    ) -> OrderWithItems:
        return await self.orders.create_order(
            supplier_name,
            order_date,
            items,
            expected_delivery_date=expected_delivery_date,
            created_by=created_by,
        )

    async def update_order(
        self,
        order_id: str,
        supplier_name: str | None = None,
        expected_delivery_date: date | None = None,
    ) -> Order:
        return await self.orders.update_order(
            order_id, supplier_name=supplier_name, expected_delivery_date=expected_delivery_date
        )

    async def approve_order(self, order_id: str, approver_id: str | None) -> Order:
        return await self.orders.approve_order(order_id, approver_id)

    async def reject_order(
        self, order_id: str, approver_id: str | None, reason: str | None = None
    ) -> Order:
        return await self.orders.reject_order(order_id, approver_id, reason)

    async def record_order_payment(self, order_id: str, amount: float) -> Order:
        return await self.orders.record_order_payment(order_id, amount)

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
        return await self.orders.receive_order_items(
            order_id,
            receiving_branch_id,
            receive_date,
            items,
            received_by=received_by,
            notes=notes,
            receive_id=receive_id,
        )

    async def get_receive(self, receive_id: str) -> ReceiveWithItems:
        return await self.orders.get_receive(receive_id)

    async def list_receives(
        self, order_id: str | None = None, branch_id: str | None = None
    ) -> list[PurchaseReceive]:
        return await self.orders.list_receives(order_id=order_id, branch_id=branch_id)

    async def delete_receive(self, receive_id: str) -> None:
        await self.orders.delete_receive(receive_id)

    async def complete_order(
        self,
        order_id: str,
        items: list[CompletionLine] | None = None,
        completed_by: str | None = None,
    ) -> CompletionResult:
        return await self.orders.complete_order(order_id, items, completed_by=completed_by)

    # Adjustments

    async def create_adjustment(
        self,
        branch_id: str,
        adjustment_type: AdjustmentType,
        adjustment_date: date,
        items: list[AdjustmentLine],
        **kwargs,
    ) -> AdjustmentWithItems:
        return await self.adjustments.create_adjustment(
            branch_id, adjustment_type, adjustment_date, items, **kwargs
        )

    async def approve_adjustment(self, adjustment_id: str, approver_id: str | None) -> BatchResult:
        return await self.adjustments.approve_adjustment(adjustment_id, approver_id)

    async def reject_adjustment(
        self, adjustment_id: str, approver_id: str | None, reason: str
    ) -> InventoryAdjustment:
        return await self.adjustments.reject_adjustment(adjustment_id, approver_id, reason)


# Singleton service instance
_stock_ledger: StockLedger | None = None


def get_stock_ledger(store: "IRecordStore | None" = None) -> StockLedger:
    """
    Get or create the StockLedger instance.

    Creates the record store from settings if not provided.

    Args:
        store: Optional record store override (not cached)

    Returns:
        Configured StockLedger
    """
    global _stock_ledger

    if store is not None:
        return StockLedger(store)
    if _stock_ledger is not None:
        return _stock_ledger

    # Lazy import infrastructure to avoid circular imports
    from stockledger.infrastructure.record_store import get_record_store

    _stock_ledger = StockLedger(get_record_store())
    return _stock_ledger


def reset_services() -> None:
    """
    Reset singleton service instances.

    Useful for testing or when configuration changes.
    """
    global _stock_ledger
    _stock_ledger = None


__all__ = [
    "StockLedger",
    "get_stock_ledger",
    "reset_services",
]
