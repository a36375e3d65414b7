"""Multi-branch stock ledger: movements, transfers and purchase-order fulfillment."""

__version__ = "1.0.0"
