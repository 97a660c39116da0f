from fastapi import APIRouter
from signdesk.api.v1.endpoints import team, work_orders

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(work_orders.router, prefix="/work-orders", tags=["Work Orders"])
api_router.include_router(team.router, prefix="/work-orders", tags=["Team"])

__all__ = ["api_router"]
