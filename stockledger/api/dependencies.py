"""
Dependency injection container for FastAPI.

Provides service instances to route handlers.
"""

from functools import lru_cache

from stockledger.application.services import StockLedger, get_stock_ledger
from stockledger.config import Settings, get_settings
from stockledger.core.interfaces import IRecordStore
from stockledger.infrastructure.record_store import get_record_store


@lru_cache
def get_app_settings() -> Settings:
    """Get cached application settings."""
    return get_settings()


def get_store() -> IRecordStore:
    """Get the configured record store."""
    return get_record_store()


def get_ledger() -> StockLedger:
    """Get the stock ledger facade."""
    return get_stock_ledger()
