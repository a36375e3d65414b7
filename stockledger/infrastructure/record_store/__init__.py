"""Record store implementations."""

from stockledger.config import get_logger, get_settings
from stockledger.core.interfaces import IRecordStore
from stockledger.infrastructure.record_store.airtable import AirtableRecordStore
from stockledger.infrastructure.record_store.memory import (
    InMemoryRecordStore,
    generate_record_id,
)

logger = get_logger(__name__)

# Singleton instance
_record_store: IRecordStore | None = None


def get_record_store(backend: str | None = None) -> IRecordStore:
    """
    Get the record store configured for this process.

    Args:
        backend: "airtable" or "memory" (default from settings)

    Returns:
        IRecordStore instance
    """
    global _record_store
    if _record_store is not None and backend is None:
        return _record_store

    backend = backend or get_settings().store.backend
    if backend == "airtable":
        store: IRecordStore = AirtableRecordStore()
    elif backend == "memory":
        store = InMemoryRecordStore()
    else:
        raise ValueError(f"Unknown record store backend: {backend}")

    logger.info("record_store_created", backend=backend)
    _record_store = store
    return store


async def close_record_store() -> None:
    """Close the singleton store, if any."""
    global _record_store
    if _record_store is not None:
        await _record_store.close()
        _record_store = None


__all__ = [
    "AirtableRecordStore",
    "InMemoryRecordStore",
    "generate_record_id",
    "get_record_store",
    "close_record_store",
]
