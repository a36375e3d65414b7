"""Per-branch stock entities."""

from datetime import datetime
from typing import Any

from pydantic import Field, field_serializer, field_validator

from stockledger.core.entities.base import RecordModel
from stockledger.core.filters import fold_text


def normalize_product_name(name: str) -> str:
    """Key form of a product name: trimmed, lower-cased, single-spaced."""
    return fold_text(name)


def clean_product_name(name: str) -> str:
    """Stored form of a product name: trimmed and single-spaced, case kept."""
    return " ".join(name.split())


class StockItem(RecordModel):
    """Quantity, price and reorder level of one product at one branch."""

    link_fields = ("branch_id",)

    branch_id: str
    product_id: str | None = None  # not reliably unique, informational only
    product_name: str
    quantity_available: int = Field(default=0, ge=0)
    unit_price: float = Field(default=0.0, ge=0)
    reorder_level: int = 10
    version: int = 0  # bumped on every write, used for conflict detection
    last_updated: datetime | None = None
    # Keys of the movement effects written into this record, newest last.
    # Stored as one long-text field, a key per line.
    applied_movements: list[str] = Field(default_factory=list)

    @field_validator("quantity_available", mode="before")
    @classmethod
    def clamp_quantity(cls, v: Any) -> int:
        # Hand edits in the store can leave blanks or negatives behind
        if v is None or v == "":
            return 0
        return max(0, int(v))

    @field_validator("unit_price", mode="before")
    @classmethod
    def default_price(cls, v: Any) -> float:
        if v is None or v == "":
            return 0.0
        return max(0.0, float(v))

    @field_validator("version", mode="before")
    @classmethod
    def default_version(cls, v: Any) -> int:
        return int(v) if v not in (None, "") else 0

    @field_validator("applied_movements", mode="before")
    @classmethod
    def split_keys(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [key for key in v.splitlines() if key.strip()]
        return list(v)

    @field_serializer("applied_movements")
    def join_keys(self, keys: list[str]) -> str:
        return "\n".join(keys)

    @property
    def key(self) -> tuple[str, str]:
        return (self.branch_id, normalize_product_name(self.product_name))

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_available <= self.reorder_level

    @property
    def stock_value(self) -> float:
        """Quantity valued at the last unit price."""
        return self.quantity_available * self.unit_price

    def has_applied(self, movement_key: str) -> bool:
        return movement_key in self.applied_movements
