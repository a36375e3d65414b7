"""Goods-receipt endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.responses import (
    ErrorResponse,
    PurchaseReceiveResponse,
    ReceiveDetailResponse,
    ReceiveItemResponse,
    ReceiveListResponse,
)
from stockledger.application.services import StockLedger

router = APIRouter(prefix="/api/receives", tags=["receives"])


@router.get("", response_model=ReceiveListResponse)
async def list_receives(
    order_id: str | None = None,
    branch_id: str | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> ReceiveListResponse:
    """Receives, oldest first, for an order and/or receiving branch."""
    receives = await ledger.list_receives(order_id=order_id, branch_id=branch_id)
    return ReceiveListResponse(
        receives=[PurchaseReceiveResponse.model_validate(r) for r in receives],
        total=len(receives),
    )


@router.get(
    "/{receive_id}",
    response_model=ReceiveDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_receive(
    receive_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> ReceiveDetailResponse:
    detail = await ledger.get_receive(receive_id)
    return ReceiveDetailResponse(
        receive=PurchaseReceiveResponse.model_validate(detail.receive),
        items=[ReceiveItemResponse.model_validate(i) for i in detail.items],
    )


@router.delete(
    "/{receive_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_receive(
    receive_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> None:
    """Delete a receive and its lines. Stock already booked stays."""
    await ledger.delete_receive(receive_id)
