"""Core domain entities."""

from stockledger.core.entities.adjustment import (
    AdjustmentItem,
    AdjustmentStatus,
    AdjustmentType,
    AdjustmentWithItems,
    InventoryAdjustment,
)
from stockledger.core.entities.base import Collection, RecordModel, utcnow
from stockledger.core.entities.batch import (
    BatchOutcome,
    BatchResult,
    ItemOutcome,
    ItemResult,
)
from stockledger.core.entities.movement import (
    Movement,
    MovementStatus,
    MovementType,
)
from stockledger.core.entities.order import (
    ApprovalStatus,
    ItemCondition,
    Order,
    OrderItem,
    OrderStatus,
    OrderWithItems,
    PurchaseReceive,
    ReceiveItem,
    ReceiveStatus,
    ReceiveWithItems,
    TransferReceipt,
)
from stockledger.core.entities.stock import (
    StockItem,
    clean_product_name,
    normalize_product_name,
)
from stockledger.core.entities.transfer import (
    Transfer,
    TransferDirection,
    TransferStatus,
)

__all__ = [
    # Base
    "Collection",
    "RecordModel",
    "utcnow",
    # Stock entities
    "StockItem",
    "clean_product_name",
    "normalize_product_name",
    # Movement entities
    "Movement",
    "MovementStatus",
    "MovementType",
    # Order entities
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderWithItems",
    "ApprovalStatus",
    "PurchaseReceive",
    "ReceiveItem",
    "ReceiveStatus",
    "ReceiveWithItems",
    "ItemCondition",
    "TransferReceipt",
    # Transfer views
    "Transfer",
    "TransferDirection",
    "TransferStatus",
    # Adjustment entities
    "InventoryAdjustment",
    "AdjustmentItem",
    "AdjustmentStatus",
    "AdjustmentType",
    "AdjustmentWithItems",
    # Batch results
    "BatchOutcome",
    "BatchResult",
    "ItemOutcome",
    "ItemResult",
]
