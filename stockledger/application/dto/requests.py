"""Request DTOs for API endpoints.

Pydantic v2 models for API request validation.
These are the ONLY contracts between API and services.
"""

from datetime import date

from pydantic import BaseModel, Field

from stockledger.core.entities import AdjustmentType, ItemCondition, MovementType


class CreateStockRequest(BaseModel):
    """Register a product at a branch with its opening quantity."""

    branch_id: str = Field(..., min_length=1)
    product_name: str = Field(..., min_length=1, examples=["Rice 5kg"])
    quantity_available: int = Field(default=0, ge=0)
    unit_price: float = Field(default=0.0, ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    product_id: str | None = None


class UpdateStockRequest(BaseModel):
    """Edit stock record details. Quantities only change through movements."""

    product_name: str | None = Field(default=None, min_length=1)
    product_id: str | None = None
    unit_price: float | None = Field(default=None, ge=0)
    reorder_level: int | None = Field(default=None, ge=0)


class CreateMovementRequest(BaseModel):
    """Request to record a stock movement.

    Sales and refunds are applied immediately; every other type waits for
    approval.
    """

    movement_type: MovementType = Field(..., description="Kind of movement")
    product_name: str = Field(..., min_length=1, examples=["Rice 5kg"])
    quantity: int = Field(..., gt=0, description="Units moved")
    from_branch_id: str | None = Field(default=None, description="Branch stock leaves")
    to_branch_id: str | None = Field(default=None, description="Branch stock enters")
    unit_cost: float = Field(default=0.0, ge=0, description="0 keeps the current price")
    reason: str | None = None
    requested_by: str | None = None
    transfer_date: date | None = None


class ApproveRequest(BaseModel):
    """Approval of a pending movement, transfer, order or adjustment."""

    approver_id: str | None = Field(default=None, description="Approving user ID")


class RejectRequest(BaseModel):
    """Rejection with an optional reason."""

    approver_id: str | None = Field(default=None, description="Rejecting user ID")
    reason: str | None = Field(default=None, description="Why it was rejected")


class TransferItemRequest(BaseModel):
    """One product of a transfer.

    Not range-checked here: invalid items are skipped and reported per item.
    """

    product_name: str = ""
    quantity: int = 0
    unit_cost: float = Field(default=0.0, ge=0)


class InitiateTransferRequest(BaseModel):
    """Request to move stock between two branches."""

    from_branch_id: str = Field(..., min_length=1)
    to_branch_id: str = Field(..., min_length=1)
    items: list[TransferItemRequest] = Field(..., min_length=1)
    reason: str | None = None
    requested_by: str | None = None
    transfer_date: date | None = None


class OrderItemRequest(BaseModel):
    product_name: str = Field(..., min_length=1)
    quantity_ordered: int = Field(..., gt=0)
    purchase_price_per_unit: float = Field(default=0.0, ge=0)
    branch_destination_id: str | None = None


class CreateOrderRequest(BaseModel):
    """Request to create a supplier purchase order."""

    supplier_name: str = Field(..., min_length=1, examples=["Acme Wholesale"])
    order_date: date
    expected_delivery_date: date | None = None
    items: list[OrderItemRequest] = Field(..., min_length=1)
    created_by: str | None = None


class UpdateOrderRequest(BaseModel):
    supplier_name: str | None = Field(default=None, min_length=1)
    expected_delivery_date: date | None = None


class PaymentRequest(BaseModel):
    """Payment against an order. Non-positive amounts are refused."""

    amount: float = Field(..., description="Amount paid now")


class ReceiveItemRequest(BaseModel):
    product_name: str = ""
    quantity_received: int = 0
    unit_cost: float = Field(default=0.0, ge=0)
    condition: ItemCondition = ItemCondition.GOOD
    quantity_ordered: int | None = None
    order_item_id: str | None = None
    notes: str | None = None


class ReceiveOrderRequest(BaseModel):
    """Goods arriving against an order at one branch."""

    receiving_branch_id: str = Field(..., min_length=1)
    receive_date: date
    items: list[ReceiveItemRequest] = Field(..., min_length=1)
    received_by: str | None = None
    notes: str | None = None
    receive_id: str | None = Field(
        default=None, description="Resume an interrupted receive with the same items"
    )


class CompletionItemRequest(BaseModel):
    product_name: str = ""
    quantity: int = 0
    branch_destination_id: str | None = None
    unit_cost: float | None = None


class CompleteOrderRequest(BaseModel):
    """Force-complete an order.

    Without items, the order's own lines and destinations are used.
    """

    items: list[CompletionItemRequest] | None = None
    completed_by: str | None = None


class AdjustmentItemRequest(BaseModel):
    product_name: str = Field(..., min_length=1)
    actual_quantity: int = Field(..., ge=0)
    system_quantity: int | None = None
    unit_cost: float | None = Field(default=None, ge=0)
    reason: str = ""


class CreateAdjustmentRequest(BaseModel):
    """Draft stock take or write-off for one branch."""

    branch_id: str = Field(..., min_length=1)
    adjustment_type: AdjustmentType
    adjustment_date: date
    items: list[AdjustmentItemRequest] = Field(..., min_length=1)
    reason: str = ""
    reference_number: str | None = None
    notes: str = ""
    created_by: str | None = None


class RejectAdjustmentRequest(BaseModel):
    """Adjustments cannot be rejected without a reason."""

    approver_id: str | None = None
    reason: str = Field(..., description="Why the adjustment was rejected")
