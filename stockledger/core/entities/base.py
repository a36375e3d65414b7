"""Shared base for entities persisted as record store field maps."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict

from stockledger.config import get_settings
from stockledger.core.filters import first_link


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class Collection(str, Enum):
    """Logical collections; physical table names come from settings."""

    STOCK = "stock"
    MOVEMENTS = "movements"
    ORDERS = "orders"
    ORDER_ITEMS = "order_items"
    PURCHASE_RECEIVES = "purchase_receives"
    RECEIVE_ITEMS = "receive_items"
    TRANSFER_RECEIPTS = "transfer_receipts"
    ADJUSTMENTS = "adjustments"
    ADJUSTMENT_ITEMS = "adjustment_items"

    @property
    def table(self) -> str:
        """Physical table name in the backing store."""
        return getattr(get_settings().store, f"{self.value}_table")


class RecordModel(BaseModel):
    """
    Entity backed by one store record.

    Link fields hold a single id on the entity and a one-element id list in
    the record.
    """

    model_config = ConfigDict(extra="ignore")

    link_fields: ClassVar[tuple[str, ...]] = ()

    id: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        data = dict(record)
        for name in cls.link_fields:
            if name in data:
                data[name] = first_link(data[name])
        return cls.model_validate(data)

    def to_fields(self, include: set[str] | None = None) -> dict[str, Any]:
        """Field map for create/update, without the id."""
        data = self.model_dump(
            mode="json",
            include=include,
            exclude={"id"},
            exclude_none=True,
        )
        for name in self.link_fields:
            if name in data:
                data[name] = [data[name]]
        return data
