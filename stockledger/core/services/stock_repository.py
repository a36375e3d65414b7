"""
Stock repository.

The single writer of StockItem.quantity_available. Every quantity change in
the system funnels through :meth:`StockRepository.upsert_quantity`.

The backing store has no atomic increment, so each change is a read followed
by a write. Two guards sit around that pair:

- a per-(branch, product) KeyedLock, so in-process writers to one key run one
  at a time;
- a version re-check right before the write, retried with tenacity on
  conflict, which catches writers outside this process most of the time.

A change made on behalf of a movement carries that movement's key, and the
key is written into the stock record together with the new quantity. A
repeated change with a key the record already lists is a no-op, which is what
makes approving, re-driving and completing movements apply stock exactly once.

Quantities are never cached; every mutation re-reads current state.
"""

import time
import uuid
from contextlib import nullcontext
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stockledger.config import get_logger, get_settings
from stockledger.core.entities import (
    Collection,
    StockItem,
    clean_product_name,
    normalize_product_name,
    utcnow,
)
from stockledger.core.exceptions import ConcurrentModificationError, ValidationError
from stockledger.core.filters import ArrayContains, Contains, IEq, SortSpec, all_of, has_link
from stockledger.core.interfaces import IRecordStore
from stockledger.core.services.concurrency import KeyedLock

logger = get_logger(__name__)


def generate_product_id() -> str:
    """Informational product id for newly created stock records."""
    return f"PRD_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class StockRepository:
    """Per-branch, per-product quantity/price/reorder-level records."""

    def __init__(
        self,
        store: IRecordStore,
        serialize_writes: bool | None = None,
        conflict_retries: int | None = None,
        conflict_backoff: float | None = None,
        default_reorder_level: int | None = None,
        applied_history: int | None = None,
    ):
        settings = get_settings().stock
        self._store = store
        self._serialize_writes = (
            settings.serialize_writes if serialize_writes is None else serialize_writes
        )
        self._conflict_retries = (
            settings.conflict_retries if conflict_retries is None else conflict_retries
        )
        self._conflict_backoff = (
            settings.conflict_backoff if conflict_backoff is None else conflict_backoff
        )
        self._default_reorder_level = (
            default_reorder_level
            if default_reorder_level is not None
            else settings.default_reorder_level
        )
        self._applied_history = max(
            1, settings.applied_history if applied_history is None else applied_history
        )
        self._locks = KeyedLock()

    @property
    def table(self) -> str:
        return Collection.STOCK.table

    # Reads

    async def query(
        self,
        branch_id: str | None = None,
        product_name: str | None = None,
    ) -> list[StockItem]:
        """Stock records for a branch and/or product-name substring."""
        expr = all_of(
            ArrayContains("branch_id", branch_id) if branch_id else None,
            Contains("product_name", product_name) if product_name else None,
        )
        records = await self._store.find(self.table, expr, sort=[SortSpec("product_name")])
        if branch_id:
            records = [r for r in records if has_link(r, "branch_id", branch_id)]
        return self._to_items(records)

    async def get(self, branch_id: str, product_name: str) -> StockItem | None:
        """The record for (branch, product), matched on the normalized name."""
        expr = all_of(
            ArrayContains("branch_id", branch_id),
            IEq("product_name", product_name),
        )
        records = await self._store.find(self.table, expr)
        wanted = normalize_product_name(product_name)
        matches = [
            item
            for item in self._to_items(r for r in records if has_link(r, "branch_id", branch_id))
            if normalize_product_name(item.product_name) == wanted
        ]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "stock_duplicate_records",
                branch_id=branch_id,
                product_name=product_name,
                record_ids=[m.id for m in matches],
            )
        return matches[0]

    async def get_by_id(self, stock_id: str) -> StockItem:
        """Raises RecordNotFoundError when there is no such record."""
        return StockItem.from_record(await self._store.find_by_id(self.table, stock_id))

    async def low_stock(self, branch_id: str | None = None) -> list[StockItem]:
        """Records at or below their reorder level."""
        return [item for item in await self.query(branch_id=branch_id) if item.is_low_stock]

    async def has_applied(self, branch_id: str, product_name: str, movement_key: str) -> bool:
        """Whether the (branch, product) record already carries a movement's effect."""
        item = await self.get(branch_id, product_name)
        return item is not None and item.has_applied(movement_key)

    # Writes

    async def upsert_quantity(
        self,
        branch_id: str,
        product_name: str,
        delta: int,
        unit_cost: float | None = None,
        product_id: str | None = None,
        movement_key: str | None = None,
    ) -> StockItem | None:
        """
        Apply a signed quantity delta to (branch, product).

        Absent record: created when delta > 0, otherwise nothing happens and
        None is returned. Present record: quantity becomes max(0, q + delta)
        and unit_price is overwritten when unit_cost is given. last_updated is
        always stamped.

        With ``movement_key``, a record that already lists the key is
        returned unchanged.

        Raises:
            ValidationError: branch or product missing
            ConcurrentModificationError: conflicts persisted past all retries
            StoreUnavailableError: backing store failure
        """
        if not branch_id:
            raise ValidationError("branch_id", "is required")
        if not product_name or not product_name.strip():
            raise ValidationError("product_name", "is required", product_name)

        async with self._guard(branch_id, product_name):
            retry_decorator = self._get_retry_decorator()
            return await retry_decorator(self._apply_delta)(
                branch_id,
                clean_product_name(product_name),
                int(delta),
                unit_cost,
                product_id,
                movement_key,
            )

    async def create_record(
        self,
        branch_id: str,
        product_name: str,
        quantity: int,
        unit_price: float,
        reorder_level: int | None = None,
        product_id: str | None = None,
    ) -> StockItem:
        """
        Register a product at a branch with its opening quantity.

        Raises:
            ValidationError: missing fields, negative numbers, or the branch
                already has a record for this product
        """
        if not branch_id:
            raise ValidationError("branch_id", "is required")
        if not product_name or not product_name.strip():
            raise ValidationError("product_name", "is required", product_name)
        if quantity < 0:
            raise ValidationError("quantity_available", "must not be negative", quantity)
        if unit_price < 0:
            raise ValidationError("unit_price", "must not be negative", unit_price)

        async with self._guard(branch_id, product_name):
            existing = await self.get(branch_id, product_name)
            if existing is not None:
                raise ValidationError(
                    "product_name",
                    f"branch already stocks this product as record {existing.id}",
                    product_name,
                )
            item = StockItem(
                branch_id=branch_id,
                product_id=product_id or generate_product_id(),
                product_name=clean_product_name(product_name),
                quantity_available=quantity,
                unit_price=float(unit_price),
                reorder_level=(
                    self._default_reorder_level if reorder_level is None else reorder_level
                ),
                version=1,
                last_updated=utcnow(),
            )
            created = StockItem.from_record(await self._store.create(self.table, item.to_fields()))

        logger.info(
            "stock_registered",
            stock_id=created.id,
            branch_id=branch_id,
            product_name=created.product_name,
            quantity=created.quantity_available,
        )
        return created

    async def update_details(
        self,
        stock_id: str,
        product_name: str | None = None,
        product_id: str | None = None,
        unit_price: float | None = None,
        reorder_level: int | None = None,
    ) -> StockItem:
        """
        Edit a record's descriptive fields. Quantity only ever moves through
        upsert_quantity.

        Raises:
            RecordNotFoundError: no such record
            ValidationError: bad values, or a rename onto another record's product
        """
        if unit_price is not None and unit_price < 0:
            raise ValidationError("unit_price", "must not be negative", unit_price)
        if reorder_level is not None and reorder_level < 0:
            raise ValidationError("reorder_level", "must not be negative", reorder_level)
        if product_name is not None and not product_name.strip():
            raise ValidationError("product_name", "must not be blank", product_name)

        current = await self.get_by_id(stock_id)
        async with self._guard(current.branch_id, current.product_name):
            current = await self.get_by_id(stock_id)
            fields: dict[str, Any] = {
                "version": current.version + 1,
                "last_updated": utcnow().isoformat(),
            }
            if product_name is not None:
                renamed = clean_product_name(product_name)
                if normalize_product_name(renamed) != normalize_product_name(current.product_name):
                    clash = await self.get(current.branch_id, renamed)
                    if clash is not None:
                        raise ValidationError(
                            "product_name",
                            f"branch already stocks this product as record {clash.id}",
                            product_name,
                        )
                fields["product_name"] = renamed
            if product_id is not None:
                fields["product_id"] = product_id
            if unit_price is not None:
                fields["unit_price"] = float(unit_price)
            if reorder_level is not None:
                fields["reorder_level"] = reorder_level

            updated = StockItem.from_record(await self._store.update(self.table, stock_id, fields))

        logger.info(
            "stock_details_updated",
            stock_id=stock_id,
            fields=sorted(set(fields) - {"version", "last_updated"}),
        )
        return updated

    async def delete(self, stock_id: str) -> None:
        """Explicit admin delete."""
        await self._store.delete(self.table, stock_id)
        logger.info("stock_deleted", stock_id=stock_id)

    def _guard(self, branch_id: str, product_name: str) -> Any:
        if not self._serialize_writes:
            return nullcontext()
        return self._locks.hold((branch_id, normalize_product_name(product_name)))

    async def _apply_delta(
        self,
        branch_id: str,
        product_name: str,
        delta: int,
        unit_cost: float | None,
        product_id: str | None,
        movement_key: str | None,
    ) -> StockItem | None:
        existing = await self.get(branch_id, product_name)
        now = utcnow()

        if existing is not None and movement_key and existing.has_applied(movement_key):
            logger.info(
                "stock_effect_already_applied",
                stock_id=existing.id,
                branch_id=branch_id,
                product_name=product_name,
                movement_key=movement_key,
            )
            return existing

        if existing is None:
            if delta <= 0:
                logger.info(
                    "stock_upsert_noop",
                    branch_id=branch_id,
                    product_name=product_name,
                    delta=delta,
                )
                return None
            item = StockItem(
                branch_id=branch_id,
                product_id=product_id or generate_product_id(),
                product_name=product_name,
                quantity_available=delta,
                unit_price=float(unit_cost) if unit_cost is not None else 0.0,
                reorder_level=self._default_reorder_level,
                version=1,
                last_updated=now,
                applied_movements=[movement_key] if movement_key else [],
            )
            record = await self._store.create(self.table, item.to_fields())
            created = StockItem.from_record(record)
            logger.info(
                "stock_created",
                stock_id=created.id,
                branch_id=branch_id,
                product_name=product_name,
                quantity=created.quantity_available,
                movement_key=movement_key,
            )
            return created

        new_quantity = existing.quantity_available + delta
        if new_quantity < 0:
            # Oversell tolerance: deficits are dropped, never raised
            logger.warning(
                "stock_clamped",
                stock_id=existing.id,
                branch_id=branch_id,
                product_name=product_name,
                available=existing.quantity_available,
                delta=delta,
                deficit=-new_quantity,
            )
            new_quantity = 0

        fields: dict[str, Any] = {
            "quantity_available": new_quantity,
            "version": existing.version + 1,
            "last_updated": now.isoformat(),
        }
        if unit_cost is not None:
            fields["unit_price"] = float(unit_cost)
        if movement_key:
            keys = existing.applied_movements + [movement_key]
            fields["applied_movements"] = "\n".join(keys[-self._applied_history :])

        await self._check_unchanged(existing)
        record = await self._store.update(self.table, existing.id, fields)  # type: ignore[arg-type]
        updated = StockItem.from_record(record)

        logger.info(
            "stock_upserted",
            stock_id=updated.id,
            branch_id=branch_id,
            product_name=product_name,
            delta=delta,
            old_qty=existing.quantity_available,
            new_qty=updated.quantity_available,
            movement_key=movement_key,
        )
        return updated

    async def _check_unchanged(self, item: StockItem) -> None:
        """Re-read the record and fail if another writer got there first."""
        current = await self._store.find_by_id(self.table, item.id)  # type: ignore[arg-type]
        found = StockItem.from_record(current)
        if (
            found.version != item.version
            or found.quantity_available != item.quantity_available
        ):
            raise ConcurrentModificationError(
                self.table, item.id or "", item.version, found.version
            )

    def _get_retry_decorator(self) -> Any:
        """Get tenacity retry decorator for version conflicts."""
        return retry(
            stop=stop_after_attempt(max(1, self._conflict_retries)),
            wait=wait_exponential(
                multiplier=self._conflict_backoff,
                min=0,
                max=max(self._conflict_backoff * 8, 0.001),
            ),
            retry=retry_if_exception_type(ConcurrentModificationError),
            before_sleep=self._log_conflict,
            reraise=True,
        )

    @staticmethod
    def _log_conflict(retry_state: RetryCallState) -> None:
        logger.warning(
            "stock_write_conflict",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    @staticmethod
    def _to_items(records: Any) -> list[StockItem]:
        items = []
        for record in records:
            try:
                items.append(StockItem.from_record(record))
            except PydanticValidationError as e:
                logger.warning(
                    "stock_record_skipped",
                    record_id=record.get("id"),
                    error=str(e),
                )
        return items
