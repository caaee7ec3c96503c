from datetime import datetime
from supabase import Client
from postgrest.exceptions import APIError
from typing import List
import logging

from rbac_console.core.errors import raise_database_error
from rbac_console.modules.dashboard.schemas import ActivityItem, DashboardStats

logger = logging.getLogger(__name__)

RECENT_PER_KIND = 5
RECENT_ACTIVITY_LIMIT = 10


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class DashboardService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _count(self, table: str) -> int:
        result = self.supabase.table(table).select("*", count="exact", head=True).execute()
        return result.count or 0

    def _recent(self, table: str):
        return self.supabase.table(table)\
            .select("id, name, created_at")\
            .order("created_at", desc=True)\
            .limit(RECENT_PER_KIND)\
            .execute()

    def get_recent_activity(self) -> List[ActivityItem]:
        """Newest permissions and roles merged into one feed. Failures degrade to an empty feed."""
        activity: List[ActivityItem] = []
        try:
            recent_permissions = self._recent("permissions").data or []
            recent_roles = self._recent("roles").data or []
        except APIError as e:
            logger.error("Error fetching recent activity: %s", e)
            return activity

        for permission in recent_permissions:
            activity.append(ActivityItem(
                id=f"permission_{permission['id']}",
                type="permission_created",
                description=f'Permission "{permission["name"]}" was created',
                timestamp=permission["created_at"],
            ))
        for role in recent_roles:
            activity.append(ActivityItem(
                id=f"role_{role['id']}",
                type="role_created",
                description=f'Role "{role["name"]}" was created',
                timestamp=role["created_at"],
            ))

        activity.sort(key=lambda item: _parse_timestamp(item.timestamp), reverse=True)
        return activity[:RECENT_ACTIVITY_LIMIT]

    def get_stats(self) -> DashboardStats:
        try:
            total_permissions = self._count("permissions")
            total_roles = self._count("roles")
            total_associations = self._count("role_permissions")
        except APIError as e:
            raise_database_error(e, "fetch dashboard statistics")

        return DashboardStats(
            totalPermissions=total_permissions,
            totalRoles=total_roles,
            totalAssociations=total_associations,
            recentActivity=self.get_recent_activity(),
        )
