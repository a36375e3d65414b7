"""Data Transfer Objects for API layer.

Request DTOs: Validate and parse incoming API requests.
Response DTOs: Structure and serialize API responses.

These are the ONLY contracts between API handlers and services.
"""

from stockledger.application.dto.requests import (
    AdjustmentItemRequest,
    ApproveRequest,
    CompleteOrderRequest,
    CompletionItemRequest,
    CreateAdjustmentRequest,
    CreateMovementRequest,
    CreateOrderRequest,
    CreateStockRequest,
    InitiateTransferRequest,
    OrderItemRequest,
    PaymentRequest,
    ReceiveItemRequest,
    ReceiveOrderRequest,
    RejectAdjustmentRequest,
    RejectRequest,
    TransferItemRequest,
    UpdateOrderRequest,
    UpdateStockRequest,
)
from stockledger.application.dto.responses import (
    AdjustmentItemResponse,
    AdjustmentListResponse,
    AdjustmentResponse,
    BatchResultResponse,
    CompleteOrderResponse,
    ErrorResponse,
    HealthResponse,
    ItemResultResponse,
    MovementListResponse,
    MovementResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    PurchaseReceiveResponse,
    ReceiveDetailResponse,
    ReceiveItemResponse,
    ReceiveListResponse,
    ReceiveOrderResponse,
    StockItemResponse,
    StockListResponse,
    TransferListResponse,
    TransferReceiptResponse,
    TransferResponse,
)

__all__ = [
    # Requests
    "CreateStockRequest",
    "UpdateStockRequest",
    "CreateMovementRequest",
    "ApproveRequest",
    "RejectRequest",
    "InitiateTransferRequest",
    "TransferItemRequest",
    "CreateOrderRequest",
    "UpdateOrderRequest",
    "OrderItemRequest",
    "PaymentRequest",
    "ReceiveOrderRequest",
    "ReceiveItemRequest",
    "CompleteOrderRequest",
    "CompletionItemRequest",
    "CreateAdjustmentRequest",
    "AdjustmentItemRequest",
    "RejectAdjustmentRequest",
    # Responses
    "StockItemResponse",
    "StockListResponse",
    "MovementResponse",
    "MovementListResponse",
    "ItemResultResponse",
    "BatchResultResponse",
    "TransferResponse",
    "TransferListResponse",
    "OrderResponse",
    "OrderItemResponse",
    "OrderListResponse",
    "PurchaseReceiveResponse",
    "ReceiveItemResponse",
    "ReceiveDetailResponse",
    "ReceiveListResponse",
    "ReceiveOrderResponse",
    "TransferReceiptResponse",
    "CompleteOrderResponse",
    "AdjustmentResponse",
    "AdjustmentItemResponse",
    "AdjustmentListResponse",
    "HealthResponse",
    "ErrorResponse",
]
