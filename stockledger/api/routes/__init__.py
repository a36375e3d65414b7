"""API route modules."""

from stockledger.api.routes.adjustments import router as adjustments_router
from stockledger.api.routes.health import router as health_router
from stockledger.api.routes.movements import router as movements_router
from stockledger.api.routes.orders import router as orders_router
from stockledger.api.routes.receives import router as receives_router
from stockledger.api.routes.stock import router as stock_router
from stockledger.api.routes.transfers import router as transfers_router

__all__ = [
    "health_router",
    "stock_router",
    "movements_router",
    "transfers_router",
    "orders_router",
    "receives_router",
    "adjustments_router",
]
