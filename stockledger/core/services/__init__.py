"""
Core business logic services.

Layer-pure services that depend only on:
- stockledger/core/entities/*
- stockledger/core/interfaces/*
- stockledger/core/exceptions.py

NO infrastructure imports. All dependencies injected via constructor.
"""

from stockledger.core.services.concurrency import KeyedLock
from stockledger.core.services.inventory_adjustments import (
    AdjustmentLine,
    InventoryAdjustments,
)
from stockledger.core.services.movement_ledger import (
    MOVEMENT_HANDLERS,
    MovementLedger,
    build_movement,
)
from stockledger.core.services.order_fulfillment import (
    CompletionLine,
    CompletionResult,
    OrderFulfillment,
    OrderLine,
    ReceiveLine,
    ReceiveResult,
)
from stockledger.core.services.stock_repository import StockRepository, generate_product_id
from stockledger.core.services.transfer_orchestrator import (
    TransferLine,
    TransferOrchestrator,
    generate_transfer_id,
)

__all__ = [
    # Stock
    "StockRepository",
    "KeyedLock",
    "generate_product_id",
    # Movements
    "MovementLedger",
    "MOVEMENT_HANDLERS",
    "build_movement",
    # Transfers
    "TransferOrchestrator",
    "TransferLine",
    "generate_transfer_id",
    # Orders
    "OrderFulfillment",
    "OrderLine",
    "ReceiveLine",
    "CompletionLine",
    "ReceiveResult",
    "CompletionResult",
    # Adjustments
    "InventoryAdjustments",
    "AdjustmentLine",
]
