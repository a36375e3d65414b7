"""
Movement ledger and state machine.

Every Stock Repository mutation is driven by, and recorded as, a Movement.

Lifecycle: pending -> approved/rejected. Approval executes the stock effect
synchronously and stores the movement as completed, so there is no steady
"approved but not executed" state. Approving a completed movement returns it
unchanged.

Each stock write is tagged with the movement's key on the stock record
itself. A movement whose approval was interrupted after the stock write stays
pending, and approving it again completes it without a second stock change.
Concurrent approvals of one movement are serialized per movement id.

Sales and refunds follow a POS transaction that has already happened, so they
are applied and completed at creation.
"""

from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from stockledger.config import get_logger
from stockledger.core.entities import (
    Collection,
    Movement,
    MovementStatus,
    MovementType,
    utcnow,
)
from stockledger.core.exceptions import (
    ConfigurationError,
    InvalidStateError,
    MovementNotFoundError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from stockledger.core.filters import ArrayContains, Eq, Or, SortSpec, all_of, has_link
from stockledger.core.interfaces import IRecordStore
from stockledger.core.services.concurrency import KeyedLock
from stockledger.core.services.stock_repository import StockRepository

logger = get_logger(__name__)

Handler = Callable[["MovementLedger", Movement], Awaitable[None]]


# Branch fields each movement type needs
REQUIRED_BRANCHES: dict[MovementType, tuple[str, ...]] = {
    MovementType.NEW_STOCK: ("to_branch_id",),
    MovementType.TRANSFER_OUT: ("from_branch_id",),
    MovementType.TRANSFER_IN: ("to_branch_id",),
    MovementType.SALE: ("from_branch_id",),
    MovementType.REFUND: ("to_branch_id",),
    MovementType.PURCHASE_ORDER: ("to_branch_id",),
    MovementType.PURCHASE_RECEIVE: ("to_branch_id",),
    MovementType.ADJUSTMENT_INCREASE: ("to_branch_id",),
    MovementType.ADJUSTMENT_DECREASE: ("from_branch_id",),
}


# Stock effect handlers, one per movement type. Every stock write carries a
# key derived from the movement id, so running a handler twice changes stock
# once.


def effect_key(movement: Movement, leg: str | None = None) -> str:
    """Key a movement's stock write is recorded under on the stock record."""
    return f"{movement.id}:{leg}" if leg else f"{movement.id}"


def effect_legs(movement: Movement) -> list[tuple[str, str]]:
    """(branch, key) of every stock write a movement makes."""
    m = movement
    if m.movement_type == MovementType.TRANSFER_OUT:
        legs = [(m.from_branch_id, effect_key(m, "out"))]
        if m.to_branch_id:
            legs.append((m.to_branch_id, effect_key(m, "in")))
        return legs  # type: ignore[return-value]
    branch = m.to_branch_id if m.movement_type.adds_stock else m.from_branch_id
    return [(branch, effect_key(m))]  # type: ignore[list-item]


async def _stock_in(ledger: "MovementLedger", m: Movement) -> None:
    # A zero cost means "not supplied": keep the current price
    await ledger.stock.upsert_quantity(
        m.to_branch_id,  # type: ignore[arg-type]
        m.product_name,
        m.quantity,
        unit_cost=m.unit_cost or None,
        product_id=m.product_id,
        movement_key=effect_key(m),
    )


async def _stock_out(ledger: "MovementLedger", m: Movement) -> None:
    await ledger.stock.upsert_quantity(
        m.from_branch_id,  # type: ignore[arg-type]
        m.product_name,
        -m.quantity,
        movement_key=effect_key(m),
    )


async def _transfer_out(ledger: "MovementLedger", m: Movement) -> None:
    """
    Debit the source and, for a grouped transfer, credit the destination.

    Debit and credit are keyed separately, so a retry after a failed credit
    only credits. source_debited is flagged for readers of the movement.
    """
    source = None
    if not m.source_debited:
        source = await ledger.stock.get(m.from_branch_id, m.product_name)  # type: ignore[arg-type]
        await ledger.stock.upsert_quantity(
            m.from_branch_id,  # type: ignore[arg-type]
            m.product_name,
            -m.quantity,
            movement_key=effect_key(m, "out"),
        )
        await ledger.mark(m, source_debited=True)
        m.source_debited = True

    if not m.to_branch_id:
        return

    unit_cost = m.unit_cost or None
    if unit_cost is None:
        destination = await ledger.stock.get(m.to_branch_id, m.product_name)
        if destination is None:
            # New destination record inherits the source price
            if source is None:
                source = await ledger.stock.get(m.from_branch_id, m.product_name)  # type: ignore[arg-type]
            if source is not None:
                unit_cost = source.unit_price
    await ledger.stock.upsert_quantity(
        m.to_branch_id,
        m.product_name,
        m.quantity,
        unit_cost=unit_cost,
        product_id=m.product_id,
        movement_key=effect_key(m, "in"),
    )


MOVEMENT_HANDLERS: dict[MovementType, Handler] = {
    MovementType.NEW_STOCK: _stock_in,
    MovementType.TRANSFER_OUT: _transfer_out,
    MovementType.TRANSFER_IN: _stock_in,
    MovementType.SALE: _stock_out,
    MovementType.REFUND: _stock_in,
    MovementType.PURCHASE_ORDER: _stock_in,
    MovementType.PURCHASE_RECEIVE: _stock_in,
    MovementType.ADJUSTMENT_INCREASE: _stock_in,
    MovementType.ADJUSTMENT_DECREASE: _stock_out,
}

_unhandled = set(MovementType) - MOVEMENT_HANDLERS.keys()
if _unhandled:
    raise ConfigurationError(f"No stock handler for movement types: {sorted(_unhandled)}")


def build_movement(**fields: Any) -> Movement:
    """Construct a Movement, reporting bad input as ValidationError."""
    try:
        movement = Movement(**fields)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "movement"
        raise ValidationError(field, error["msg"], error.get("input")) from e

    for name in REQUIRED_BRANCHES[movement.movement_type]:
        if not getattr(movement, name):
            raise ValidationError(
                name, f"is required for {movement.movement_type.value} movements"
            )
    if (
        movement.from_branch_id
        and movement.from_branch_id == movement.to_branch_id
    ):
        raise ValidationError("to_branch_id", "must differ from from_branch_id", movement.to_branch_id)
    if not movement.product_name.strip():
        raise ValidationError("product_name", "is required")
    return movement


class MovementLedger:
    """Creates, approves and rejects movements; dispatches their stock effect."""

    def __init__(self, store: IRecordStore, stock: StockRepository):
        self._store = store
        self.stock = stock
        # Per-movement lock: status read, stock effect and status write of
        # one movement never interleave with another decision on it
        self._locks = KeyedLock()

    @property
    def table(self) -> str:
        return Collection.MOVEMENTS.table

    async def create_movement(
        self,
        movement_type: MovementType | str,
        product_name: str,
        quantity: int,
        from_branch_id: str | None = None,
        to_branch_id: str | None = None,
        unit_cost: float = 0.0,
        reason: str | None = None,
        requested_by: str | None = None,
        transfer_id: str | None = None,
        product_id: str | None = None,
        transfer_date: date | None = None,
    ) -> Movement:
        """
        Record a new movement.

        Pending for every type except sale and refund, which are applied to
        stock and stored completed immediately.
        """
        movement = build_movement(
            movement_type=movement_type,
            product_name=product_name,
            quantity=quantity,
            from_branch_id=from_branch_id,
            to_branch_id=to_branch_id,
            unit_cost=unit_cost,
            reason=reason,
            requested_by=requested_by,
            transfer_id=transfer_id,
            product_id=product_id,
            transfer_date=transfer_date or date.today(),
            status=MovementStatus.PENDING,
        )

        if movement.movement_type.applies_on_create:
            return await self.record_movement(movement, actor_id=requested_by)
        return await self._insert(movement)

    async def record_movement(self, movement: Movement, actor_id: str | None = None) -> Movement:
        """
        Store a movement and apply its stock effect straight away.

        The row is written pending first and then approved. If anything fails
        after that write the movement stays pending; approving it again
        finishes the job without applying stock twice.
        """
        created = await self._insert(
            movement.model_copy(update={"status": MovementStatus.PENDING, "id": None})
        )
        return await self.approve_movement(
            created.id, actor_id or movement.requested_by  # type: ignore[arg-type]
        )

    async def get_movement(self, movement_id: str) -> Movement:
        try:
            record = await self._store.find_by_id(self.table, movement_id)
        except RecordNotFoundError as e:
            raise MovementNotFoundError(movement_id) from e
        return Movement.from_record(record)

    async def approve_movement(self, movement_id: str, approver_id: str | None) -> Movement:
        """
        Execute a pending movement's stock effect and mark it completed.

        Raises:
            MovementNotFoundError: no such movement
            InvalidStateError: movement was rejected
        """
        async with self._locks.hold(movement_id):
            movement = await self.get_movement(movement_id)

            if movement.status in (MovementStatus.COMPLETED, MovementStatus.APPROVED):
                logger.info(
                    "movement_approve_noop",
                    movement_id=movement_id,
                    status=movement.status.value,
                )
                return movement
            if movement.status != MovementStatus.PENDING:
                raise InvalidStateError(
                    "Movement", movement_id, movement.status.value, MovementStatus.PENDING.value
                )

            handler = MOVEMENT_HANDLERS[movement.movement_type]
            await handler(self, movement)

            fields: dict[str, Any] = {
                "status": MovementStatus.COMPLETED.value,
                "approved_at": utcnow().isoformat(),
            }
            if approver_id:
                fields["approved_by"] = [approver_id]
            try:
                record = await self._store.update(self.table, movement_id, fields)
            except StoreError as e:
                logger.error(
                    "movement_status_write_failed",
                    movement_id=movement_id,
                    stock_applied=True,
                    error=str(e),
                )
                raise

        approved = Movement.from_record(record)
        logger.info(
            "movement_approved",
            movement_id=movement_id,
            type=approved.movement_type.value,
            approved_by=approver_id,
        )
        return approved

    async def reject_movement(
        self,
        movement_id: str,
        approver_id: str | None,
        reason: str | None = None,
    ) -> Movement:
        """Reject a pending movement whose stock effect has not started. Never touches stock."""
        async with self._locks.hold(movement_id):
            movement = await self.get_movement(movement_id)
            if movement.status != MovementStatus.PENDING:
                raise InvalidStateError(
                    "Movement", movement_id, movement.status.value, MovementStatus.PENDING.value
                )
            if await self.effect_applied(movement):
                # An interrupted approval left stock changed; approve again to finish it
                raise InvalidStateError(
                    "Movement", movement_id, "partially_applied", MovementStatus.PENDING.value
                )

            fields: dict[str, Any] = {
                "status": MovementStatus.REJECTED.value,
                "approved_at": utcnow().isoformat(),
            }
            if approver_id:
                fields["approved_by"] = [approver_id]
            if reason:
                fields["rejection_reason"] = reason
            record = await self._store.update(self.table, movement_id, fields)

        logger.info("movement_rejected", movement_id=movement_id, reason=reason)
        return Movement.from_record(record)

    async def effect_applied(self, movement: Movement) -> bool:
        """Whether any stock write of this movement has landed."""
        if movement.source_debited:
            return True
        for branch_id, key in effect_legs(movement):
            if branch_id and await self.stock.has_applied(branch_id, movement.product_name, key):
                return True
        return False

    async def list_movements(
        self,
        branch_id: str | None = None,
        status: MovementStatus | None = None,
        movement_type: MovementType | None = None,
        transfer_id: str | None = None,
        order_id: str | None = None,
        adjustment_id: str | None = None,
        receive_id: str | None = None,
    ) -> list[Movement]:
        """Movements touching a branch and/or matching status, type or parent record."""
        expr = all_of(
            Or(
                ArrayContains("from_branch_id", branch_id),
                ArrayContains("to_branch_id", branch_id),
            )
            if branch_id
            else None,
            Eq("status", status.value) if status else None,
            Eq("movement_type", movement_type.value) if movement_type else None,
            Eq("transfer_id", transfer_id) if transfer_id else None,
            ArrayContains("order_id", order_id) if order_id else None,
            ArrayContains("adjustment_id", adjustment_id) if adjustment_id else None,
            ArrayContains("receive_id", receive_id) if receive_id else None,
        )
        records = await self._store.find(self.table, expr, sort=[SortSpec("created_at")])

        movements = []
        for record in records:
            if branch_id and not (
                has_link(record, "from_branch_id", branch_id)
                or has_link(record, "to_branch_id", branch_id)
            ):
                continue
            if order_id and not has_link(record, "order_id", order_id):
                continue
            if adjustment_id and not has_link(record, "adjustment_id", adjustment_id):
                continue
            if receive_id and not has_link(record, "receive_id", receive_id):
                continue
            try:
                movements.append(Movement.from_record(record))
            except PydanticValidationError as e:
                logger.warning("movement_record_skipped", record_id=record.get("id"), error=str(e))
        return movements

    async def mark(self, movement: Movement, **fields: Any) -> None:
        """Persist progress flags on a movement without changing its status."""
        await self._store.update(self.table, movement.id, fields)  # type: ignore[arg-type]

    async def _insert(self, movement: Movement) -> Movement:
        record = await self._store.create(self.table, movement.to_fields())
        created = Movement.from_record(record)
        logger.info(
            "movement_created",
            movement_id=created.id,
            type=created.movement_type.value,
            product_name=created.product_name,
            qty=created.quantity,
            status=created.status.value,
            transfer_id=created.transfer_id,
        )
        return created
