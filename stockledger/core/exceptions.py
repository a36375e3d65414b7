"""
Domain exceptions for the stock ledger.

Provides specific exception types for different error scenarios.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stockledger.core.entities.batch import BatchResult


class StockLedgerError(Exception):
    """Base exception for all stock ledger errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Validation Exceptions
class ValidationError(StockLedgerError):
    """Input validation failed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Validation error for '{field}': {message}",
            code="VALIDATION_ERROR",
            details={
                "field": field,
                "message": message,
                "value": str(value)[:100] if value is not None else None,
            },
        )


# Lookup Exceptions
class NotFoundError(StockLedgerError):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str, code: str | None = None):
        super().__init__(
            f"{entity} not found: {entity_id}",
            code=code or "NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class RecordNotFoundError(NotFoundError):
    """Record missing from a store collection."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(collection, record_id, code="RECORD_NOT_FOUND")


class MovementNotFoundError(NotFoundError):
    """Stock movement not found."""

    def __init__(self, movement_id: str):
        super().__init__("Movement", movement_id, code="MOVEMENT_NOT_FOUND")


class TransferNotFoundError(NotFoundError):
    """No movements share the given transfer id."""

    def __init__(self, transfer_id: str):
        super().__init__("Transfer", transfer_id, code="TRANSFER_NOT_FOUND")


class OrderNotFoundError(NotFoundError):
    """Purchase order not found."""

    def __init__(self, order_id: str):
        super().__init__("Order", order_id, code="ORDER_NOT_FOUND")


class ReceiveNotFoundError(NotFoundError):
    """Purchase receive not found."""

    def __init__(self, receive_id: str):
        super().__init__("Receive", receive_id, code="RECEIVE_NOT_FOUND")


class AdjustmentNotFoundError(NotFoundError):
    """Inventory adjustment not found."""

    def __init__(self, adjustment_id: str):
        super().__init__("Adjustment", adjustment_id, code="ADJUSTMENT_NOT_FOUND")


# State Exceptions
class InvalidStateError(StockLedgerError):
    """Transition attempted from the wrong status."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current: str,
        expected: str | list[str],
    ):
        if isinstance(expected, list):
            expected_text = " or ".join(expected)
        else:
            expected_text = expected
        super().__init__(
            f"{entity} {entity_id} is '{current}', expected {expected_text}",
            code="INVALID_STATE",
            details={
                "entity": entity,
                "id": entity_id,
                "current": current,
                "expected": expected,
            },
        )


# Storage Exceptions
class StoreError(StockLedgerError):
    """Base exception for record store operations."""

    pass


class StoreUnavailableError(StoreError):
    """Record store call failed (network, auth, server error)."""

    def __init__(self, operation: str, reason: str | None = None):
        super().__init__(
            f"Record store unavailable during {operation}" + (f": {reason}" if reason else ""),
            code="STORE_UNAVAILABLE",
            details={"operation": operation, "reason": reason},
        )


class StoreRequestError(StoreError):
    """Record store rejected the request (bad field, bad formula)."""

    def __init__(self, operation: str, status_code: int, reason: str):
        super().__init__(
            f"Record store rejected {operation} (HTTP {status_code}): {reason}",
            code="STORE_REQUEST_ERROR",
            details={"operation": operation, "status_code": status_code, "reason": reason},
        )


class ConcurrentModificationError(StoreError):
    """Record changed between read and write."""

    def __init__(self, collection: str, record_id: str, expected: int, found: int):
        super().__init__(
            f"{collection} record {record_id} changed concurrently "
            f"(version {expected} -> {found})",
            code="CONCURRENT_MODIFICATION",
            details={
                "collection": collection,
                "id": record_id,
                "expected_version": expected,
                "found_version": found,
            },
        )


# Batch Exceptions
class PartialBatchError(StockLedgerError):
    """A multi-item batch stopped with some items committed and some not."""

    def __init__(
        self,
        operation: str,
        result: "BatchResult",
        reason: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        applied = len(result.applied)
        total = len(result.items)
        super().__init__(
            f"{operation} partially applied: {applied}/{total} items committed"
            + (f" ({reason})" if reason else ""),
            code="PARTIAL_BATCH",
            details={
                "operation": operation,
                "reason": reason,
                "result": result.model_dump(mode="json"),
                **(context or {}),
            },
        )
        self.operation = operation
        self.result = result


class ConfigurationError(StockLedgerError):
    """Configuration error."""

    pass
