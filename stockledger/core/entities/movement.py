"""Stock movement entities."""

from datetime import date, datetime
from enum import Enum

from pydantic import Field, model_validator

from stockledger.core.entities.base import RecordModel, utcnow


class MovementType(str, Enum):
    """Kinds of stock-affecting events."""

    NEW_STOCK = "new_stock"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    SALE = "sale"
    REFUND = "refund"
    PURCHASE_ORDER = "purchase_order"
    PURCHASE_RECEIVE = "purchase_receive"
    ADJUSTMENT_INCREASE = "adjustment_increase"
    ADJUSTMENT_DECREASE = "adjustment_decrease"

    @property
    def applies_on_create(self) -> bool:
        """Sales and refunds follow an already-committed POS transaction."""
        return self in (MovementType.SALE, MovementType.REFUND)

    @property
    def adds_stock(self) -> bool:
        """Credits its to_branch; the others debit from_branch."""
        return self in (
            MovementType.NEW_STOCK,
            MovementType.TRANSFER_IN,
            MovementType.REFUND,
            MovementType.PURCHASE_ORDER,
            MovementType.PURCHASE_RECEIVE,
            MovementType.ADJUSTMENT_INCREASE,
        )


class MovementStatus(str, Enum):
    """Movement lifecycle: pending -> approved/rejected, approved -> completed."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Movement(RecordModel):
    """One recorded stock-affecting intent with an approval lifecycle."""

    link_fields = (
        "from_branch_id",
        "to_branch_id",
        "requested_by",
        "approved_by",
        "order_id",
        "receive_id",
        "adjustment_id",
    )

    movement_type: MovementType
    product_name: str
    product_id: str | None = None
    quantity: int = Field(..., gt=0)
    from_branch_id: str | None = None
    to_branch_id: str | None = None
    unit_cost: float = 0.0
    total_cost: float | None = None
    status: MovementStatus = MovementStatus.PENDING
    transfer_id: str | None = None
    order_id: str | None = None
    receive_id: str | None = None
    adjustment_id: str | None = None
    requested_by: str | None = None
    approved_by: str | None = None
    reason: str | None = None
    rejection_reason: str | None = None
    transfer_date: date | None = None
    # Set once a grouped transfer has debited its source branch; the stock
    # record keeps the authoritative mark, see StockItem.applied_movements
    source_debited: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    approved_at: datetime | None = None

    @model_validator(mode="after")
    def fill_total_cost(self) -> "Movement":
        if self.total_cost is None:
            self.total_cost = self.quantity * (self.unit_cost or 0.0)
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == MovementStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status == MovementStatus.COMPLETED

    def involves_branch(self, branch_id: str) -> bool:
        return branch_id in (self.from_branch_id, self.to_branch_id)
