"""Inventory adjustment (stock take) entities."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from stockledger.core.entities.base import RecordModel, utcnow


class AdjustmentType(str, Enum):
    STOCK_TAKE = "stock_take"
    DAMAGE = "damage"
    THEFT = "theft"
    EXPIRY = "expiry"
    FOUND = "found"
    TRANSFER_CORRECTION = "transfer_correction"
    OTHER = "other"


class AdjustmentStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


class InventoryAdjustment(RecordModel):
    """Counted-vs-system correction for one branch, applied on approval."""

    link_fields = ("branch_id", "created_by", "approved_by")

    branch_id: str
    adjustment_type: AdjustmentType
    adjustment_date: date
    reason: str = ""
    reference_number: str | None = None
    notes: str = ""
    status: AdjustmentStatus = AdjustmentStatus.DRAFT
    total_items: int = 0
    total_value_impact: float = 0.0
    total_quantity_impact: int = 0
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class AdjustmentItem(RecordModel):
    """One product line of an adjustment."""

    link_fields = ("adjustment_id",)

    adjustment_id: str
    product_name: str
    system_quantity: int = 0
    actual_quantity: int = 0
    quantity_difference: int = 0
    unit_cost: float = 0.0
    value_impact: float = 0.0
    reason: str = ""


class AdjustmentWithItems(BaseModel):
    adjustment: InventoryAdjustment
    items: list[AdjustmentItem] = []
