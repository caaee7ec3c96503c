"""Cached snapshot of the RBAC tables used to ground model prompts and validate commands."""

import logging
import time
from typing import Optional

from supabase import Client

from rbac_console.config.settings import settings
from rbac_console.modules.assistant.schemas import (
    ContextAssociation,
    ContextPermission,
    ContextRole,
    RBACContext,
)

logger = logging.getLogger(__name__)


class RBACContextManager:
    def __init__(self, supabase: Client, ttl_seconds: float = 30):
        self.supabase = supabase
        self.ttl_seconds = ttl_seconds
        self._context: Optional[RBACContext] = None
        self._last_updated: float = 0.0

    def _is_fresh(self) -> bool:
        return self._context is not None and time.monotonic() - self._last_updated < self.ttl_seconds

    def get_context(self) -> RBACContext:
        if not self._is_fresh():
            self.refresh_context()
        return self._context

    def refresh_context(self) -> None:
        try:
            permissions = self.supabase.table("permissions")\
                .select("id, name, description")\
                .order("name")\
                .execute()
            roles = self.supabase.table("roles")\
                .select("id, name")\
                .order("name")\
                .execute()
            associations = self.supabase.table("role_permissions")\
                .select("role_id, permission_id")\
                .execute()
        except Exception as e:
            # Stale state is still useful for prompting; keep whatever we had
            logger.warning("Failed to refresh RBAC context: %s", e)
            if self._context is None:
                self._context = RBACContext()
            # Back off until the next TTL instead of retrying on every lookup
            self._last_updated = time.monotonic()
            return

        self._context = RBACContext(
            permissions=[ContextPermission(**row) for row in permissions.data or []],
            roles=[ContextRole(**row) for row in roles.data or []],
            associations=[ContextAssociation(**row) for row in associations.data or []],
        )
        self._last_updated = time.monotonic()
        logger.debug(
            "RBAC context refreshed: %d permissions, %d roles, %d associations",
            len(self._context.permissions), len(self._context.roles), len(self._context.associations),
        )

    def invalidate(self) -> None:
        self._last_updated = 0.0

    def get_context_string(self) -> str:
        context = self.get_context()
        role_names = {r.id: r.name for r in context.roles}
        permission_names = {p.id: p.name for p in context.permissions}

        permissions_list = "\n".join(
            f"- {p.name} ({p.description})" if p.description else f"- {p.name}"
            for p in context.permissions
        )
        roles_list = "\n".join(f"- {r.name}" for r in context.roles)
        associations_list = "\n".join(
            f"- {role_names.get(a.role_id, 'Unknown Role')} has "
            f"{permission_names.get(a.permission_id, 'Unknown Permission')}"
            for a in context.associations
        )

        return (
            "Current RBAC System State:\n\n"
            f"PERMISSIONS:\n{permissions_list or 'No permissions defined'}\n\n"
            f"ROLES:\n{roles_list or 'No roles defined'}\n\n"
            f"ROLE-PERMISSION ASSOCIATIONS:\n{associations_list or 'No associations defined'}"
        )

    def find_permission_by_name(self, name: str) -> Optional[ContextPermission]:
        wanted = name.strip().lower()
        return next((p for p in self.get_context().permissions if p.name.lower() == wanted), None)

    def find_role_by_name(self, name: str) -> Optional[ContextRole]:
        wanted = name.strip().lower()
        return next((r for r in self.get_context().roles if r.name.lower() == wanted), None)

    def has_role_permission(self, role_id: str, permission_id: str) -> bool:
        return any(
            a.role_id == role_id and a.permission_id == permission_id
            for a in self.get_context().associations
        )


_manager: Optional[RBACContextManager] = None


def get_context_manager(supabase: Client) -> RBACContextManager:
    """Process-wide manager; rebuilt when the underlying client changes."""
    global _manager
    if _manager is None or _manager.supabase is not supabase:
        _manager = RBACContextManager(supabase, settings.ai_context_ttl_seconds)
    return _manager
