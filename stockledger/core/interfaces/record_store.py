"""Abstract interface for the hosted record store."""

from abc import ABC, abstractmethod
from typing import Any

from stockledger.core.filters import Expr, SortSpec

Record = dict[str, Any]


class IRecordStore(ABC):
    """
    Generic CRUD over named collections.

    No transactions, no bulk-atomic writes, eventually consistent. Records are
    flat field maps with a store-generated ``id``; link fields are lists of ids.
    """

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Expr | None = None,
        sort: list[SortSpec] | None = None,
    ) -> list[Record]:
        """Return every record matching the filter."""
        pass

    @abstractmethod
    async def create(self, collection: str, fields: dict[str, Any]) -> Record:
        """Insert a record and return it with its generated id."""
        pass

    @abstractmethod
    async def update(
        self, collection: str, record_id: str, fields: dict[str, Any]
    ) -> Record:
        """Partially update a record and return the whole record."""
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record."""
        pass

    @abstractmethod
    async def find_by_id(self, collection: str, record_id: str) -> Record:
        """Get a record by id. Raises RecordNotFoundError when missing."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        return None
