from fastapi import APIRouter, Depends
from rbac_console.database.supabase_client import get_supabase
from rbac_console.modules.dashboard.schemas import DashboardStatsResponse
from rbac_console.modules.dashboard.service import DashboardService
from rbac_console.core.dependencies import require_admin
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_dashboard_service(supabase: Client = Depends(get_supabase)) -> DashboardService:
    return DashboardService(supabase)


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_stats(
    user_data: Dict = Depends(require_admin),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Entity counts and the most recently created permissions and roles"""
    return {"data": service.get_stats()}
