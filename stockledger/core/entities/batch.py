"""Itemized results for multi-item operations (transfers, receives, completions)."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, computed_field


class ItemOutcome(str, Enum):
    """What happened to one item of a batch."""

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"  # idempotent re-drive
    SKIPPED = "skipped"  # failed validation or not eligible
    FAILED = "failed"  # store failure, safe to retry
    NOT_ATTEMPTED = "not_attempted"  # batch aborted before this item


class BatchOutcome(str, Enum):
    """Overall result of a batch."""

    APPLIED = "applied"
    FAILED = "failed"
    PARTIAL = "partial"
    EMPTY = "empty"


class ItemResult(BaseModel):
    """Result for a single batch item."""

    index: int
    key: str  # product name or movement id, whatever identifies the item
    outcome: ItemOutcome
    record_id: str | None = None
    error: str | None = None
    data: dict[str, Any] | None = None

    @property
    def committed(self) -> bool:
        return self.outcome in (ItemOutcome.APPLIED, ItemOutcome.ALREADY_APPLIED)

    @property
    def retryable(self) -> bool:
        return self.outcome in (ItemOutcome.FAILED, ItemOutcome.NOT_ATTEMPTED)


class BatchResult(BaseModel):
    """Ordered per-item results; never collapsed into a single flag."""

    items: list[ItemResult] = []

    def add(
        self,
        key: str,
        outcome: ItemOutcome,
        record_id: str | None = None,
        error: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> ItemResult:
        item = ItemResult(
            index=len(self.items),
            key=key,
            outcome=outcome,
            record_id=record_id,
            error=error,
            data=data,
        )
        self.items.append(item)
        return item

    @property
    def applied(self) -> list[ItemResult]:
        return [i for i in self.items if i.committed]

    @property
    def skipped(self) -> list[ItemResult]:
        return [i for i in self.items if i.outcome == ItemOutcome.SKIPPED]

    @property
    def failed(self) -> list[ItemResult]:
        return [i for i in self.items if i.retryable]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def outcome(self) -> BatchOutcome:
        """
        Overall outcome.

        Skipped items do not count as failures: a batch whose eligible items
        all committed is APPLIED even when some items were skipped.
        """
        if not self.items:
            return BatchOutcome.EMPTY
        committed = len(self.applied)
        retryable = len(self.failed)
        if retryable == 0:
            return BatchOutcome.APPLIED if committed else BatchOutcome.EMPTY
        if committed == 0:
            return BatchOutcome.FAILED
        return BatchOutcome.PARTIAL
