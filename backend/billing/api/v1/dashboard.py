"""
FastAPI router for the dashboard
Project: Billing Backend
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.database import get_db
from billing.schemas.common import ApiResponse
from billing.schemas.invoice import DashboardStats
from billing.services.dashboard_service import DashboardService

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)


def get_dashboard_service() -> DashboardService:
    return DashboardService()


@router.get(
    "/stats",
    summary="Dashboard statistics",
    description="Customer and product counts, invoice counts per status, revenue rollups.",
    response_model=ApiResponse[DashboardStats],
    status_code=status.HTTP_200_OK,
)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    service: DashboardService = Depends(get_dashboard_service),
) -> ApiResponse[DashboardStats]:
    stats = await service.get_stats(db)
    return ApiResponse(data=stats)
