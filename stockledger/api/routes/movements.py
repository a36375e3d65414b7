"""Stock movement endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.requests import (
    ApproveRequest,
    CreateMovementRequest,
    RejectRequest,
)
from stockledger.application.dto.responses import (
    ErrorResponse,
    MovementListResponse,
    MovementResponse,
)
from stockledger.application.services import StockLedger
from stockledger.core.entities import MovementStatus, MovementType

router = APIRouter(prefix="/api/movements", tags=["movements"])


@router.post(
    "",
    response_model=MovementResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def create_movement(
    request: CreateMovementRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> MovementResponse:
    """Record a movement. Sales and refunds hit stock immediately."""
    movement = await ledger.create_movement(
        request.movement_type,
        request.product_name,
        request.quantity,
        from_branch_id=request.from_branch_id,
        to_branch_id=request.to_branch_id,
        unit_cost=request.unit_cost,
        reason=request.reason,
        requested_by=request.requested_by,
        transfer_date=request.transfer_date,
    )
    return MovementResponse.model_validate(movement)


@router.get("", response_model=MovementListResponse)
async def list_movements(
    branch_id: str | None = None,
    status: MovementStatus | None = None,
    movement_type: MovementType | None = None,
    transfer_id: str | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> MovementListResponse:
    """List movements, oldest first."""
    movements = await ledger.movements.list_movements(
        branch_id=branch_id,
        status=status,
        movement_type=movement_type,
        transfer_id=transfer_id,
    )
    return MovementListResponse(
        movements=[MovementResponse.model_validate(m) for m in movements],
        total=len(movements),
    )


@router.get(
    "/{movement_id}",
    response_model=MovementResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_movement(
    movement_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> MovementResponse:
    movement = await ledger.movements.get_movement(movement_id)
    return MovementResponse.model_validate(movement)


@router.post(
    "/{movement_id}/approve",
    response_model=MovementResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_movement(
    movement_id: str,
    request: ApproveRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> MovementResponse:
    """Apply a pending movement to stock. Approving twice is harmless."""
    movement = await ledger.approve_movement(movement_id, request.approver_id)
    return MovementResponse.model_validate(movement)


@router.post(
    "/{movement_id}/reject",
    response_model=MovementResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_movement(
    movement_id: str,
    request: RejectRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> MovementResponse:
    movement = await ledger.reject_movement(movement_id, request.approver_id, request.reason)
    return MovementResponse.model_validate(movement)
