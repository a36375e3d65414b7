"""Purchase order and goods-receipt entities."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from stockledger.core.entities.base import RecordModel, utcnow


class OrderStatus(str, Enum):
    """Fulfillment/payment status of a purchase order."""

    ORDERED = "ordered"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    DELIVERED = "delivered"
    RECEIVED = "received"
    COMPLETED = "completed"


class ApprovalStatus(str, Enum):
    """Approval state, independent of fulfillment status."""

    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


class ItemCondition(str, Enum):
    """Condition of received goods; only GOOD goods enter stock."""

    GOOD = "good"
    DAMAGED = "damaged"
    EXPIRED = "expired"
    MISSING = "missing"


class ReceiveStatus(str, Enum):
    PARTIAL = "partial"
    COMPLETE = "complete"


class Order(RecordModel):
    """Supplier purchase order header."""

    link_fields = ("created_by", "approved_by")

    supplier_name: str
    order_date: date
    expected_delivery_date: date | None = None
    total_amount: float = 0.0
    amount_paid: float = 0.0
    balance_remaining: float = 0.0
    status: OrderStatus = OrderStatus.ORDERED
    approval_status: ApprovalStatus = ApprovalStatus.DRAFT
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return (
            self.status == OrderStatus.COMPLETED
            or self.approval_status == ApprovalStatus.REJECTED
        )


class OrderItem(RecordModel):
    """One line of a purchase order."""

    link_fields = ("order_id",)

    order_id: str
    product_name: str
    quantity_ordered: int = Field(..., gt=0)
    purchase_price_per_unit: float = Field(default=0.0, ge=0)
    quantity_received: int = 0
    branch_destination_id: str | None = None

    @property
    def line_total(self) -> float:
        return self.quantity_ordered * self.purchase_price_per_unit

    @property
    def is_fully_received(self) -> bool:
        return self.quantity_received >= self.quantity_ordered

    @property
    def outstanding(self) -> int:
        return max(0, self.quantity_ordered - self.quantity_received)


class PurchaseReceive(RecordModel):
    """Goods arriving against one order on one date."""

    link_fields = ("order_id", "receiving_branch_id")

    order_id: str
    receiving_branch_id: str
    receive_date: date
    received_by: str | None = None
    notes: str | None = None
    total_items: int = 0
    total_quantity_received: int = 0
    total_quantity_ordered: int = 0
    receive_status: ReceiveStatus = ReceiveStatus.PARTIAL
    created_at: datetime = Field(default_factory=utcnow)


class ReceiveItem(RecordModel):
    """One received line of a PurchaseReceive."""

    link_fields = ("receive_id", "order_item_id", "movement_id")

    receive_id: str
    order_item_id: str | None = None
    product_name: str
    quantity_ordered: int = 0
    quantity_received: int = Field(..., gt=0)
    unit_cost: float = 0.0
    total_cost: float | None = None
    condition: ItemCondition = ItemCondition.GOOD
    notes: str | None = None
    movement_id: str | None = None

    @model_validator(mode="after")
    def fill_total_cost(self) -> "ReceiveItem":
        if self.total_cost is None:
            self.total_cost = self.quantity_received * self.unit_cost
        return self


class TransferReceipt(RecordModel):
    """Stock booked into a branch by force-completing an order."""

    link_fields = ("order_id", "branch_id", "movement_id")

    order_id: str
    branch_id: str
    product_name: str
    quantity: int
    unit_cost: float = 0.0
    movement_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class OrderWithItems(BaseModel):
    """Order header together with its lines."""

    order: Order
    items: list[OrderItem] = []

    @property
    def fully_received(self) -> bool:
        return bool(self.items) and all(i.is_fully_received for i in self.items)


class ReceiveWithItems(BaseModel):
    """Receive header together with its received lines."""

    receive: PurchaseReceive
    items: list[ReceiveItem] = []

    @property
    def stocked_quantity(self) -> int:
        return sum(i.quantity_received for i in self.items if i.condition == ItemCondition.GOOD)
