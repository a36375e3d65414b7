"""In-memory record store for tests and local development."""

import asyncio
import copy
import secrets
import string
from collections.abc import Callable
from typing import Any

from stockledger.config import get_logger
from stockledger.core.exceptions import RecordNotFoundError, StoreUnavailableError
from stockledger.core.filters import Expr, SortSpec
from stockledger.core.interfaces import IRecordStore, Record

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits

# (operation, collection, record_id_or_fields) -> True to fail the call
FaultPredicate = Callable[[str, str, Any], bool]


def generate_record_id() -> str:
    """Store-style record id: ``rec`` plus 14 random characters."""
    return "rec" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(14))


class InMemoryRecordStore(IRecordStore):
    """
    Dict-backed store with the same contract as the hosted one.

    Every call yields to the event loop before touching data (``latency``
    seconds, 0 by default) so concurrent callers interleave the way they do
    over the network. ``fail_on`` injects StoreUnavailableError for chosen calls.
    """

    def __init__(
        self,
        latency: float = 0.0,
        fail_on: FaultPredicate | None = None,
    ):
        self._tables: dict[str, dict[str, Record]] = {}
        self.latency = latency
        self.fail_on = fail_on
        self.calls: list[tuple[str, str]] = []

    async def _enter(self, operation: str, collection: str, subject: Any = None) -> None:
        await asyncio.sleep(self.latency)
        self.calls.append((operation, collection))
        if self.fail_on is not None and self.fail_on(operation, collection, subject):
            raise StoreUnavailableError(f"{operation} {collection}", "injected fault")

    def _table(self, collection: str) -> dict[str, Record]:
        return self._tables.setdefault(collection, {})

    async def find(
        self,
        collection: str,
        filter: Expr | None = None,
        sort: list[SortSpec] | None = None,
    ) -> list[Record]:
        await self._enter("find", collection, filter)
        records = [
            copy.deepcopy(r)
            for r in self._table(collection).values()
            if filter is None or filter.matches(r)
        ]
        # Stable multi-key sort, last key first
        for key in reversed(sort or []):
            records.sort(
                key=lambda r, f=key.field: (
                    r.get(f) is None,
                    r.get(f) if r.get(f) is not None else "",
                ),
                reverse=key.direction == "desc",
            )
        return records

    async def create(self, collection: str, fields: dict[str, Any]) -> Record:
        await self._enter("create", collection, fields)
        record_id = generate_record_id()
        record = {"id": record_id, **copy.deepcopy(fields)}
        self._table(collection)[record_id] = record
        return copy.deepcopy(record)

    async def update(
        self, collection: str, record_id: str, fields: dict[str, Any]
    ) -> Record:
        await self._enter("update", collection, record_id)
        table = self._table(collection)
        if record_id not in table:
            raise RecordNotFoundError(collection, record_id)
        table[record_id].update(copy.deepcopy(fields))
        return copy.deepcopy(table[record_id])

    async def delete(self, collection: str, record_id: str) -> None:
        await self._enter("delete", collection, record_id)
        table = self._table(collection)
        if record_id not in table:
            raise RecordNotFoundError(collection, record_id)
        del table[record_id]

    async def find_by_id(self, collection: str, record_id: str) -> Record:
        await self._enter("find_by_id", collection, record_id)
        record = self._table(collection).get(record_id)
        if record is None:
            raise RecordNotFoundError(collection, record_id)
        return copy.deepcopy(record)

    # Test helpers

    def seed(self, collection: str, fields: dict[str, Any]) -> Record:
        """Insert synchronously, bypassing latency and faults."""
        record_id = generate_record_id()
        record = {"id": record_id, **copy.deepcopy(fields)}
        self._table(collection)[record_id] = record
        return copy.deepcopy(record)

    def all(self, collection: str) -> list[Record]:
        return [copy.deepcopy(r) for r in self._table(collection).values()]

    def clear(self) -> None:
        self._tables.clear()
        self.calls.clear()
