"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from stockledger.api.dependencies import get_store
from stockledger.application.dto.responses import HealthResponse
from stockledger.config import get_settings
from stockledger.core.entities import Collection
from stockledger.core.exceptions import StoreError
from stockledger.core.interfaces import IRecordStore

router = APIRouter(prefix="/api/health", tags=["health"])

# Track startup time
_start_time = time.time()


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check.

    Returns service status and uptime.
    """
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        uptime_seconds=time.time() - _start_time,
        store_backend=settings.store.backend,
    )


@router.get("/store", response_model=HealthResponse)
async def store_health(store: IRecordStore = Depends(get_store)) -> HealthResponse:
    """
    Record store health check.

    Runs one stock query against the store.
    """
    settings = get_settings()
    try:
        await store.find(Collection.STOCK.table)
    except StoreError as e:
        return HealthResponse(
            status="degraded",
            version=settings.app_version,
            uptime_seconds=time.time() - _start_time,
            store_backend=settings.store.backend,
            store_available=False,
            error=str(e),
        )

    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        uptime_seconds=time.time() - _start_time,
        store_backend=settings.store.backend,
        store_available=True,
    )
