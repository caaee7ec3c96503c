from pydantic import BaseModel
from typing import List, Literal


class ActivityItem(BaseModel):
    id: str
    type: Literal["role_created", "permission_created", "association_created", "association_deleted"]
    description: str
    timestamp: str


class DashboardStats(BaseModel):
    totalPermissions: int
    totalRoles: int
    totalAssociations: int
    recentActivity: List[ActivityItem]


class DashboardStatsResponse(BaseModel):
    data: DashboardStats
