"""Branch stock endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.requests import CreateStockRequest, UpdateStockRequest
from stockledger.application.dto.responses import (
    ErrorResponse,
    StockItemResponse,
    StockListResponse,
)
from stockledger.application.services import StockLedger

router = APIRouter(prefix="/api/stock", tags=["stock"])


@router.get("", response_model=StockListResponse)
async def query_stock(
    branch_id: str | None = None,
    product_name: str | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> StockListResponse:
    """Stock records for a branch and/or product-name substring."""
    items = await ledger.query_stock(branch_id=branch_id, product_name=product_name)
    return StockListResponse(
        items=[StockItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.post(
    "",
    response_model=StockItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_stock(
    request: CreateStockRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> StockItemResponse:
    """Register a product at a branch with its opening quantity."""
    item = await ledger.create_stock(
        request.branch_id,
        request.product_name,
        request.quantity_available,
        request.unit_price,
        reorder_level=request.reorder_level,
        product_id=request.product_id,
    )
    return StockItemResponse.model_validate(item)


@router.get("/low", response_model=StockListResponse)
async def low_stock(
    branch_id: str | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> StockListResponse:
    """Records at or below their reorder level."""
    items = await ledger.low_stock(branch_id)
    return StockListResponse(
        items=[StockItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.delete(
    "/{stock_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_stock(
    stock_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> None:
    """Delete a stock record."""
    await ledger.stock.delete(stock_id)


@router.put(
    "/{stock_id}",
    response_model=StockItemResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_stock(
    stock_id: str,
    request: UpdateStockRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> StockItemResponse:
    """Edit record details. Quantity changes go through movements."""
    item = await ledger.update_stock(stock_id, **request.model_dump(exclude_none=True))
    return StockItemResponse.model_validate(item)
