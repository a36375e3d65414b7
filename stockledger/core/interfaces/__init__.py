"""Core interfaces (ports) implemented by the infrastructure layer."""

from stockledger.core.interfaces.record_store import IRecordStore, Record

__all__ = ["IRecordStore", "Record"]
