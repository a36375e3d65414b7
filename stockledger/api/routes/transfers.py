"""Inter-branch transfer endpoints."""

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_ledger
from stockledger.application.dto.requests import (
    ApproveRequest,
    InitiateTransferRequest,
    RejectRequest,
)
from stockledger.application.dto.responses import (
    BatchResultResponse,
    ErrorResponse,
    TransferListResponse,
    TransferResponse,
)
from stockledger.application.services import StockLedger
from stockledger.core.entities import MovementStatus, Transfer
from stockledger.core.services import TransferLine

router = APIRouter(prefix="/api/transfers", tags=["transfers"])


def _to_response(transfer: Transfer, branch_id: str | None = None) -> TransferResponse:
    response = TransferResponse.model_validate(transfer)
    if branch_id:
        response.direction = transfer.direction_for(branch_id)
    return response


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 207: {"model": ErrorResponse}},
)
async def initiate_transfer(
    request: InitiateTransferRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> TransferResponse:
    """Create one pending movement per item. Invalid items are reported in result."""
    transfer = await ledger.transfers.initiate_transfer(
        request.from_branch_id,
        request.to_branch_id,
        [
            TransferLine(
                product_name=item.product_name,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
            )
            for item in request.items
        ],
        reason=request.reason,
        requested_by=request.requested_by,
        transfer_date=request.transfer_date,
    )
    return _to_response(transfer)


@router.get("", response_model=TransferListResponse)
async def list_transfers(
    branch_id: str | None = None,
    status: MovementStatus | None = None,
    ledger: StockLedger = Depends(get_ledger),
) -> TransferListResponse:
    """Transfers into or out of a branch, with direction relative to it."""
    transfers = await ledger.transfers.list_transfers(branch_id=branch_id, status=status)
    return TransferListResponse(
        transfers=[_to_response(t, branch_id) for t in transfers],
        total=len(transfers),
    )


@router.get(
    "/{transfer_id}",
    response_model=TransferResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_transfer(
    transfer_id: str,
    ledger: StockLedger = Depends(get_ledger),
) -> TransferResponse:
    return _to_response(await ledger.transfers.get_transfer(transfer_id))


@router.post(
    "/{transfer_id}/approve",
    response_model=BatchResultResponse,
    responses={
        404: {"model": ErrorResponse},
        207: {"model": ErrorResponse, "description": "Stopped part way; see details.result"},
    },
)
async def approve_transfer(
    transfer_id: str,
    request: ApproveRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> BatchResultResponse:
    """Apply every pending item. Safe to repeat after a partial failure."""
    result = await ledger.approve_transfer(transfer_id, request.approver_id)
    return BatchResultResponse.model_validate(result)


@router.post(
    "/{transfer_id}/reject",
    response_model=BatchResultResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_transfer(
    transfer_id: str,
    request: RejectRequest,
    ledger: StockLedger = Depends(get_ledger),
) -> BatchResultResponse:
    result = await ledger.reject_transfer(transfer_id, request.approver_id, request.reason)
    return BatchResultResponse.model_validate(result)
