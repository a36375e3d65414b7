"""Grouped inter-branch transfer view."""

from enum import Enum

from pydantic import BaseModel, computed_field

from stockledger.core.entities.batch import BatchResult
from stockledger.core.entities.movement import Movement, MovementStatus


class TransferStatus(str, Enum):
    """Aggregate status over all movements of a transfer."""

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    MIXED = "mixed"  # some items applied, some pending or rejected


class TransferDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class Transfer(BaseModel):
    """All movements sharing one transfer id, one per product."""

    transfer_id: str
    from_branch_id: str | None = None
    to_branch_id: str | None = None
    movements: list[Movement] = []
    # Itemized outcome of the call that produced this view, when any
    result: BatchResult | None = None

    @classmethod
    def from_movements(cls, transfer_id: str, movements: list[Movement]) -> "Transfer":
        first = movements[0] if movements else None
        return cls(
            transfer_id=transfer_id,
            from_branch_id=first.from_branch_id if first else None,
            to_branch_id=first.to_branch_id if first else None,
            movements=movements,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> TransferStatus:
        statuses = {m.status for m in self.movements}
        # Legacy "approved" records were already applied
        if MovementStatus.APPROVED in statuses:
            statuses = (statuses - {MovementStatus.APPROVED}) | {MovementStatus.COMPLETED}
        if statuses == {MovementStatus.COMPLETED}:
            return TransferStatus.COMPLETED
        if statuses == {MovementStatus.REJECTED}:
            return TransferStatus.REJECTED
        if statuses <= {MovementStatus.PENDING}:
            return TransferStatus.PENDING
        return TransferStatus.MIXED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_quantity(self) -> int:
        return sum(m.quantity for m in self.movements)

    def direction_for(self, branch_id: str) -> TransferDirection | None:
        """Whether the transfer enters or leaves a branch."""
        if branch_id == self.to_branch_id:
            return TransferDirection.INCOMING
        if branch_id == self.from_branch_id:
            return TransferDirection.OUTGOING
        return None
