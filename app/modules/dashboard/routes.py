from fastapi import APIRouter, Depends
from app.modules.dashboard.schemas import DashboardStats
from app.modules.dashboard.service import DashboardService
from app.modules.users.schemas import ProfileResponse
from app.core.dependencies import get_user_supabase, require_role
from app.core.roles import Role
from supabase import AsyncClient

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_dashboard_service(supabase: AsyncClient = Depends(get_user_supabase)) -> DashboardService:
    return DashboardService(supabase)


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    profile: ProfileResponse = Depends(require_role(Role.ADMIN)),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Today's figures, 7-day revenue, popular items and recent orders (admin only)"""
    return await service.get_stats()
