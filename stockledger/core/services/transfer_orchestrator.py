"""
Transfer orchestrator.

Moves stock between branches as a group of pending movements that share one
transfer id. Approval walks the group item by item; a store failure stops the
walk and reports exactly which items were applied. Re-driving an approval is
safe because completed items are recognised and skipped.
"""

import secrets
import time
from dataclasses import dataclass
from datetime import date

from stockledger.config import get_logger, get_settings
from stockledger.core.entities import (
    BatchResult,
    ItemOutcome,
    Movement,
    MovementStatus,
    MovementType,
    Transfer,
)
from stockledger.core.exceptions import (
    InvalidStateError,
    PartialBatchError,
    StoreError,
    TransferNotFoundError,
    ValidationError,
)
from stockledger.core.services.movement_ledger import MovementLedger

logger = get_logger(__name__)

_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


@dataclass
class TransferLine:
    """One product to move."""

    product_name: str
    quantity: int
    unit_cost: float = 0.0


def generate_transfer_id(prefix: str | None = None) -> str:
    """``TRF_<epoch ms>_<9 random chars>``."""
    prefix = prefix or get_settings().transfer.id_prefix
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class TransferOrchestrator:
    """Initiates, approves and rejects grouped transfers."""

    def __init__(self, ledger: MovementLedger, check_source_stock: bool | None = None):
        self._ledger = ledger
        self._check_source_stock = (
            get_settings().transfer.check_source_stock
            if check_source_stock is None
            else check_source_stock
        )

    async def initiate_transfer(
        self,
        from_branch_id: str,
        to_branch_id: str,
        items: list[TransferLine],
        reason: str | None = None,
        requested_by: str | None = None,
        transfer_date: date | None = None,
    ) -> Transfer:
        """
        Create one pending transfer_out movement per valid item.

        Items without a product name or with a non-positive quantity are
        skipped and reported in ``Transfer.result``.

        Raises:
            ValidationError: branches missing or equal, or no valid item
            PartialBatchError: store failed after some movements were created
        """
        if not from_branch_id:
            raise ValidationError("from_branch_id", "is required")
        if not to_branch_id:
            raise ValidationError("to_branch_id", "is required")
        if from_branch_id == to_branch_id:
            raise ValidationError("to_branch_id", "must differ from from_branch_id", to_branch_id)
        if not items:
            raise ValidationError("items", "at least one item is required")

        valid = [
            line
            for line in items
            if line.product_name and line.product_name.strip() and line.quantity > 0
        ]
        if not valid:
            raise ValidationError("items", "no item has a product name and a positive quantity")

        transfer_id = generate_transfer_id()
        result = BatchResult()
        movements: list[Movement] = []

        for i, line in enumerate(items):
            name = (line.product_name or "").strip()
            if not name or line.quantity <= 0:
                result.add(
                    name or f"item {i}",
                    ItemOutcome.SKIPPED,
                    error="product_name and a positive quantity are required",
                )
                continue

            if self._check_source_stock:
                await self._warn_if_short(from_branch_id, name, line.quantity, transfer_id)

            try:
                movement = await self._ledger.create_movement(
                    MovementType.TRANSFER_OUT,
                    product_name=name,
                    quantity=line.quantity,
                    from_branch_id=from_branch_id,
                    to_branch_id=to_branch_id,
                    unit_cost=line.unit_cost,
                    reason=reason,
                    requested_by=requested_by,
                    transfer_id=transfer_id,
                    transfer_date=transfer_date,
                )
            except StoreError as e:
                result.add(name, ItemOutcome.FAILED, error=str(e))
                for rest in items[i + 1 :]:
                    result.add(rest.product_name or "", ItemOutcome.NOT_ATTEMPTED)
                logger.error(
                    "transfer_initiate_interrupted",
                    transfer_id=transfer_id,
                    created=len(movements),
                    error=str(e),
                )
                raise PartialBatchError("initiate_transfer", result, reason=str(e)) from e

            movements.append(movement)
            result.add(name, ItemOutcome.APPLIED, record_id=movement.id)

        logger.info(
            "transfer_initiated",
            transfer_id=transfer_id,
            from_branch_id=from_branch_id,
            to_branch_id=to_branch_id,
            items=len(movements),
            skipped=len(result.skipped),
        )
        transfer = Transfer.from_movements(transfer_id, movements)
        transfer.result = result
        return transfer

    async def approve_transfer(self, transfer_id: str, approver_id: str | None) -> BatchResult:
        """
        Approve every pending movement of a transfer, in creation order.

        Raises:
            TransferNotFoundError: no movement carries this transfer id
            PartialBatchError: a store failure stopped the walk; the result
                says which items were applied and which remain pending
        """
        movements = await self._siblings(transfer_id)
        result = BatchResult()

        for i, movement in enumerate(movements):
            if movement.status in (MovementStatus.COMPLETED, MovementStatus.APPROVED):
                result.add(movement.product_name, ItemOutcome.ALREADY_APPLIED, record_id=movement.id)
                continue
            if movement.status == MovementStatus.REJECTED:
                result.add(
                    movement.product_name,
                    ItemOutcome.SKIPPED,
                    record_id=movement.id,
                    error="movement was rejected",
                )
                continue

            try:
                await self._ledger.approve_movement(movement.id, approver_id)  # type: ignore[arg-type]
            except StoreError as e:
                result.add(movement.product_name, ItemOutcome.FAILED, record_id=movement.id, error=str(e))
                self._add_remaining(result, movements[i + 1 :])
                logger.error(
                    "transfer_approve_interrupted",
                    transfer_id=transfer_id,
                    applied=len(result.applied),
                    failed_movement_id=movement.id,
                    error=str(e),
                )
                raise PartialBatchError("approve_transfer", result, reason=str(e)) from e

            result.add(movement.product_name, ItemOutcome.APPLIED, record_id=movement.id)

        logger.info(
            "transfer_approved",
            transfer_id=transfer_id,
            approved_by=approver_id,
            outcome=result.outcome.value,
            applied=len([r for r in result.items if r.outcome == ItemOutcome.APPLIED]),
        )
        return result

    async def reject_transfer(
        self,
        transfer_id: str,
        approver_id: str | None,
        reason: str | None = None,
    ) -> BatchResult:
        """
        Reject every pending movement of a transfer.

        Refused outright when any movement has already been applied, so a
        transfer is never half rejected.
        """
        movements = await self._siblings(transfer_id)

        applied = [
            m
            for m in movements
            if m.status in (MovementStatus.COMPLETED, MovementStatus.APPROVED)
            or (m.is_pending and await self._ledger.effect_applied(m))
        ]
        if applied:
            raise InvalidStateError(
                "Transfer",
                transfer_id,
                f"{len(applied)} item(s) already applied",
                MovementStatus.PENDING.value,
            )

        result = BatchResult()
        for i, movement in enumerate(movements):
            if movement.status == MovementStatus.REJECTED:
                result.add(movement.product_name, ItemOutcome.ALREADY_APPLIED, record_id=movement.id)
                continue
            try:
                await self._ledger.reject_movement(movement.id, approver_id, reason)  # type: ignore[arg-type]
            except StoreError as e:
                result.add(movement.product_name, ItemOutcome.FAILED, record_id=movement.id, error=str(e))
                self._add_remaining(result, movements[i + 1 :])
                raise PartialBatchError("reject_transfer", result, reason=str(e)) from e
            result.add(movement.product_name, ItemOutcome.APPLIED, record_id=movement.id)

        logger.info("transfer_rejected", transfer_id=transfer_id, reason=reason)
        return result

    async def get_transfer(self, transfer_id: str) -> Transfer:
        return Transfer.from_movements(transfer_id, await self._siblings(transfer_id))

    async def list_transfers(
        self,
        branch_id: str | None = None,
        status: MovementStatus | None = None,
    ) -> list[Transfer]:
        """Transfers touching a branch, grouped by transfer id, oldest first."""
        movements = await self._ledger.list_movements(
            branch_id=branch_id,
            status=status,
            movement_type=MovementType.TRANSFER_OUT,
        )
        groups: dict[str, list[Movement]] = {}
        for movement in movements:
            # Ungrouped legacy transfers stand alone
            groups.setdefault(movement.transfer_id or movement.id or "", []).append(movement)
        return [Transfer.from_movements(tid, group) for tid, group in groups.items()]

    async def pending_transfers(self, branch_id: str) -> list[Transfer]:
        """Pending transfers into or out of a branch; see Transfer.direction_for."""
        return await self.list_transfers(branch_id=branch_id, status=MovementStatus.PENDING)

    async def _siblings(self, transfer_id: str) -> list[Movement]:
        movements = await self._ledger.list_movements(transfer_id=transfer_id)
        if not movements:
            raise TransferNotFoundError(transfer_id)
        return movements

    async def _warn_if_short(
        self, branch_id: str, product_name: str, quantity: int, transfer_id: str
    ) -> None:
        source = await self._ledger.stock.get(branch_id, product_name)
        available = source.quantity_available if source else 0
        if available < quantity:
            logger.warning(
                "transfer_source_short",
                transfer_id=transfer_id,
                branch_id=branch_id,
                product_name=product_name,
                requested=quantity,
                available=available,
            )

    @staticmethod
    def _add_remaining(result: BatchResult, movements: list[Movement]) -> None:
        for movement in movements:
            if movement.status in (MovementStatus.COMPLETED, MovementStatus.APPROVED):
                outcome = ItemOutcome.ALREADY_APPLIED
            elif movement.status == MovementStatus.REJECTED:
                outcome = ItemOutcome.SKIPPED
            else:
                outcome = ItemOutcome.NOT_ATTEMPTED
            result.add(movement.product_name, outcome, record_id=movement.id)
