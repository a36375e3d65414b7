"""Response DTOs for API endpoints.

Pydantic v2 models for API response serialization.
These are the ONLY contracts between services and API layer.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stockledger.core.entities import (
    AdjustmentStatus,
    AdjustmentType,
    ApprovalStatus,
    BatchOutcome,
    ItemCondition,
    ItemOutcome,
    MovementStatus,
    MovementType,
    OrderStatus,
    ReceiveStatus,
    TransferDirection,
    TransferStatus,
)


class _FromEntity(BaseModel):
    """Response built from a core entity's attributes."""

    model_config = ConfigDict(from_attributes=True)


class StockItemResponse(_FromEntity):
    """Stock of one product at one branch."""

    id: str = Field(..., description="Stock record ID")
    branch_id: str
    product_id: str | None = None
    product_name: str
    quantity_available: int
    unit_price: float
    reorder_level: int
    is_low_stock: bool = Field(..., description="At or below reorder level")
    stock_value: float = Field(..., description="quantity_available * unit_price")
    last_updated: datetime | None = None


class StockListResponse(BaseModel):
    items: list[StockItemResponse]
    total: int


class MovementResponse(_FromEntity):
    """Stock movement response DTO."""

    id: str = Field(..., description="Movement ID")
    movement_type: MovementType
    product_name: str
    product_id: str | None = None
    quantity: int
    from_branch_id: str | None = None
    to_branch_id: str | None = None
    unit_cost: float
    total_cost: float | None = None
    status: MovementStatus
    transfer_id: str | None = None
    order_id: str | None = None
    requested_by: str | None = None
    approved_by: str | None = None
    reason: str | None = None
    rejection_reason: str | None = None
    transfer_date: date | None = None
    created_at: datetime
    approved_at: datetime | None = None


class MovementListResponse(BaseModel):
    movements: list[MovementResponse]
    total: int


class ItemResultResponse(_FromEntity):
    index: int
    key: str
    outcome: ItemOutcome
    record_id: str | None = None
    error: str | None = None
    data: dict[str, Any] | None = None


class BatchResultResponse(_FromEntity):
    """Itemized outcome of a multi-item operation."""

    outcome: BatchOutcome
    items: list[ItemResultResponse]


class TransferResponse(_FromEntity):
    """All movements of one transfer."""

    transfer_id: str
    from_branch_id: str | None = None
    to_branch_id: str | None = None
    status: TransferStatus
    total_quantity: int
    direction: TransferDirection | None = Field(
        default=None, description="incoming/outgoing for the queried branch"
    )
    movements: list[MovementResponse]
    result: BatchResultResponse | None = None


class TransferListResponse(BaseModel):
    transfers: list[TransferResponse]
    total: int


class OrderItemResponse(_FromEntity):
    id: str
    product_name: str
    quantity_ordered: int
    quantity_received: int
    purchase_price_per_unit: float
    line_total: float
    branch_destination_id: str | None = None


class OrderResponse(_FromEntity):
    """Purchase order response DTO."""

    id: str = Field(..., description="Order ID")
    supplier_name: str
    order_date: date
    expected_delivery_date: date | None = None
    total_amount: float
    amount_paid: float
    balance_remaining: float
    status: OrderStatus
    approval_status: ApprovalStatus
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    items: list[OrderItemResponse] | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int


class ReceiveItemResponse(_FromEntity):
    id: str
    product_name: str
    quantity_ordered: int
    quantity_received: int
    unit_cost: float
    total_cost: float | None = None
    condition: ItemCondition
    movement_id: str | None = Field(default=None, description="Stock movement for good items")


class PurchaseReceiveResponse(_FromEntity):
    id: str
    order_id: str
    receiving_branch_id: str
    receive_date: date
    total_items: int
    total_quantity_received: int
    total_quantity_ordered: int
    receive_status: ReceiveStatus


class ReceiveDetailResponse(BaseModel):
    receive: PurchaseReceiveResponse
    items: list[ReceiveItemResponse]


class ReceiveListResponse(BaseModel):
    receives: list[PurchaseReceiveResponse]
    total: int


class ReceiveOrderResponse(BaseModel):
    order: OrderResponse
    receive: PurchaseReceiveResponse
    items: list[ReceiveItemResponse]
    result: BatchResultResponse


class TransferReceiptResponse(_FromEntity):
    id: str
    branch_id: str
    product_name: str
    quantity: int
    unit_cost: float
    movement_id: str | None = None


class CompleteOrderResponse(BaseModel):
    order: OrderResponse
    receipts: list[TransferReceiptResponse]
    result: BatchResultResponse


class AdjustmentItemResponse(_FromEntity):
    id: str
    product_name: str
    system_quantity: int
    actual_quantity: int
    quantity_difference: int
    unit_cost: float
    value_impact: float
    reason: str = ""


class AdjustmentResponse(_FromEntity):
    """Inventory adjustment response DTO."""

    id: str
    branch_id: str
    adjustment_type: AdjustmentType
    adjustment_date: date
    reason: str = ""
    reference_number: str | None = None
    status: AdjustmentStatus
    total_items: int
    total_quantity_impact: int
    total_value_impact: float
    created_by: str | None = None
    approved_by: str | None = None
    rejection_reason: str | None = None
    created_at: datetime
    items: list[AdjustmentItemResponse] | None = None


class AdjustmentListResponse(BaseModel):
    adjustments: list[AdjustmentResponse]
    total: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"
    uptime_seconds: float
    store_backend: str | None = None
    store_available: bool | None = None
    error: str | None = None


class ErrorResponse(BaseModel):
    """Standardized error response DTO.

    Every error response includes:
    - error_code: machine-readable code (e.g. ORDER_NOT_FOUND)
    - message: human-readable description
    - hint: suggested recovery action
    - path: request path that triggered the error
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    hint: str | None = Field(default=None, description="Suggested recovery action")
    detail: str | None = Field(default=None, description="Additional details")
    details: dict[str, Any] | None = Field(
        default=None, description="Structured details, e.g. the itemized batch result"
    )
    path: str | None = Field(default=None, description="Request path")
    timestamp: datetime = Field(default_factory=datetime.now)
