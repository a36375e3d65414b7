"""Supplier purchase order endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.requests import (
    ApproveRequest,
    CompleteOrderRequest,
    CreateOrderRequest,
    PaymentRequest,
    ReceiveOrderRequest,
    RejectRequest,
    UpdateOrderRequest,
)
from stockledger.application.dto.responses import (
    BatchResultResponse,
    CompleteOrderResponse,
    ErrorResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    PurchaseReceiveResponse,
    ReceiveItemResponse,
    ReceiveOrderResponse,
    TransferReceiptResponse,
)
from stockledger.application.services import StockLedger
from stockledger.core.entities import OrderStatus, OrderWithItems
from stockledger.core.services import CompletionLine, OrderLine, ReceiveLine

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _with_items(detail: OrderWithItems) -> OrderResponse:
    response = OrderResponse.model_validate(detail.order)
    response.items = [OrderItemResponse.model_validate(i) for i in detail.items]
    return response


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_order(
    request: CreateOrderRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    detail = await ledger.create_order(
        request.supplier_name,
        request.order_date,
        [
            OrderLine(
                product_name=item.product_name,
                quantity_ordered=item.quantity_ordered,
                purchase_price_per_unit=item.purchase_price_per_unit,
                branch_destination_id=item.branch_destination_id,
            )
            for item in request.items
        ],
        expected_delivery_date=request.expected_delivery_date,
        created_by=request.created_by,
    )
    return _with_items(detail)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: OrderStatus | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderListResponse:
    orders = await ledger.orders.list_orders(status)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_order(
    order_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    return _with_items(await ledger.orders.get_order(order_id))


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_order(
    order_id: str,
    request: UpdateOrderRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    """Change supplier or expected delivery date while the order is open."""
    order = await ledger.update_order(
        order_id,
        supplier_name=request.supplier_name,
        expected_delivery_date=request.expected_delivery_date,
    )
    return OrderResponse.model_validate(order)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_order(
    order_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> None:
    await ledger.orders.delete_order(order_id)


@router.post(
    "/{order_id}/approve",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_order(
    order_id: str,
    request: ApproveRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    order = await ledger.approve_order(order_id, request.approver_id)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/reject",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_order(
    order_id: str,
    request: RejectRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    order = await ledger.reject_order(order_id, request.approver_id, request.reason)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/payments",
    response_model=OrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def record_payment(
    order_id: str,
    request: PaymentRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> OrderResponse:
    order = await ledger.record_order_payment(order_id, request.amount)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/receive",
    response_model=ReceiveOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        207: {"model": ErrorResponse, "description": "Stopped part way; see details.result"},
    },
)
async def receive_order_items(
    order_id: str,
    request: ReceiveOrderRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> ReceiveOrderResponse:
    """Record goods arriving. Only good-condition items enter stock."""
    received = await ledger.receive_order_items(
        order_id,
        request.receiving_branch_id,
        request.receive_date,
        [
            ReceiveLine(
                product_name=item.product_name,
                quantity_received=item.quantity_received,
                unit_cost=item.unit_cost,
                condition=item.condition,
                quantity_ordered=item.quantity_ordered,
                order_item_id=item.order_item_id,
                notes=item.notes,
            )
            for item in request.items
        ],
        received_by=request.received_by,
        notes=request.notes,
        receive_id=request.receive_id,
    )
    return ReceiveOrderResponse(
        order=OrderResponse.model_validate(received.order),
        receive=PurchaseReceiveResponse.model_validate(received.receive),
        items=[ReceiveItemResponse.model_validate(i) for i in received.items],
        result=BatchResultResponse.model_validate(received.result),
    )


@router.post(
    "/{order_id}/complete",
    response_model=CompleteOrderResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        207: {"model": ErrorResponse, "description": "Stopped part way; see details.result"},
    },
)
async def complete_order(
    order_id: str,
    request: CompleteOrderRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> CompleteOrderResponse:
    """Book every line into its destination branch and close the order."""
    items = None
    if request.items is not None:
        items = [
            CompletionLine(
                product_name=item.product_name,
                quantity=item.quantity,
                branch_destination_id=item.branch_destination_id,
                unit_cost=item.unit_cost,
            )
            for item in request.items
        ]
    completed = await ledger.complete_order(order_id, items, completed_by=request.completed_by)
    return CompleteOrderResponse(
        order=OrderResponse.model_validate(completed.order),
        receipts=[TransferReceiptResponse.model_validate(r) for r in completed.receipts],
        result=BatchResultResponse.model_validate(completed.result),
    )
