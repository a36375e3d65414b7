"""Inventory adjustment endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.requests import (
    ApproveRequest,
    CreateAdjustmentRequest,
    RejectAdjustmentRequest,
)
from stockledger.application.dto.responses import (
    AdjustmentItemResponse,
    AdjustmentListResponse,
    AdjustmentResponse,
    BatchResultResponse,
    ErrorResponse,
)
from stockledger.application.services import StockLedger
from stockledger.core.entities import AdjustmentStatus, AdjustmentWithItems
from stockledger.core.services import AdjustmentLine

router = APIRouter(prefix="/api/adjustments", tags=["adjustments"])


def _with_items(detail: AdjustmentWithItems) -> AdjustmentResponse:
    response = AdjustmentResponse.model_validate(detail.adjustment)
    response.items = [AdjustmentItemResponse.model_validate(i) for i in detail.items]
    return response


@router.post(
    "",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_adjustment(
    request: CreateAdjustmentRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> AdjustmentResponse:
    """Draft an adjustment. Stock is untouched until approval."""
    detail = await ledger.create_adjustment(
        request.branch_id,
        request.adjustment_type,
        request.adjustment_date,
        [
            AdjustmentLine(
                product_name=item.product_name,
                actual_quantity=item.actual_quantity,
                system_quantity=item.system_quantity,
                unit_cost=item.unit_cost,
                reason=item.reason,
            )
            for item in request.items
        ],
        reason=request.reason,
        reference_number=request.reference_number,
        notes=request.notes,
        created_by=request.created_by,
    )
    return _with_items(detail)


@router.get("", response_model=AdjustmentListResponse)
async def list_adjustments(
    branch_id: str | None = None,
    status: AdjustmentStatus | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> AdjustmentListResponse:
    adjustments = await ledger.adjustments.list_adjustments(branch_id=branch_id, status=status)
    return AdjustmentListResponse(
        adjustments=[AdjustmentResponse.model_validate(a) for a in adjustments],
        total=len(adjustments),
    )


@router.get(
    "/{adjustment_id}",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_adjustment(
    adjustment_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> AdjustmentResponse:
    return _with_items(await ledger.adjustments.get_adjustment(adjustment_id))


@router.post(
    "/{adjustment_id}/approve",
    response_model=BatchResultResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        207: {"model": ErrorResponse, "description": "Stopped part way; see details.result"},
    },
)
async def approve_adjustment(
    adjustment_id: str,
    request: ApproveRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> BatchResultResponse:
    result = await ledger.approve_adjustment(adjustment_id, request.approver_id)
    return BatchResultResponse.model_validate(result)


@router.post(
    "/{adjustment_id}/reject",
    response_model=AdjustmentResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def reject_adjustment(
    adjustment_id: str,
    request: RejectAdjustmentRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> AdjustmentResponse:
    adjustment = await ledger.reject_adjustment(
        adjustment_id, request.approver_id, request.reason
    )
    return AdjustmentResponse.model_validate(adjustment)
