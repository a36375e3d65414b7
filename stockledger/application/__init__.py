"""
Application layer - DTOs and service factories.

This layer orchestrates business logic by:
1. Defining request/response DTOs for API contracts
2. Providing the StockLedger facade and its factory for dependency injection
"""

from stockledger.application.services import (
    StockLedger,
    get_stock_ledger,
    reset_services,
)

__all__ = [
    "StockLedger",
    "get_stock_ledger",
    "reset_services",
]
