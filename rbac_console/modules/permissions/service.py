from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional, Tuple
import logging

from rbac_console.core.errors import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION, raise_database_error
from rbac_console.core.validation import SearchParams, escape_like
from rbac_console.modules.permissions.schemas import (
    PermissionCreate, PermissionUpdate, PermissionResponse, PermissionRole
)

logger = logging.getLogger(__name__)

# Characters that would break a PostgREST or=(...) filter expression
_FILTER_UNSAFE = str.maketrans("", "", ",()")


def _duplicate_name(name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "Permission name already exists",
            "message": f'A permission with the name "{name}" already exists. Please choose a different name.',
        },
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")


class PermissionService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _fetch(self, permission_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("permissions")\
            .select("*")\
            .eq("id", permission_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _find_by_name(self, name: str, exclude_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.supabase.table("permissions").select("id").eq("name", name)
        if exclude_id:
            query = query.neq("id", exclude_id)
        result = query.limit(1).execute()
        return result.data[0] if result.data else None

    def list_permissions(self, params: SearchParams) -> Tuple[List[PermissionResponse], int]:
        """List permissions ordered by name, filtered by name/description substring"""
        try:
            query = self.supabase.table("permissions")\
                .select("*", count="exact")\
                .order("name")
            if params.query:
                term = escape_like(params.query.translate(_FILTER_UNSAFE))
                query = query.or_(f"name.ilike.%{term}%,description.ilike.%{term}%")
            result = query.range(params.offset, params.offset + params.limit - 1).execute()
            rows = result.data or []
            return [PermissionResponse(**row) for row in rows], result.count or 0
        except APIError as e:
            raise_database_error(e, "list permissions")

    def get_permission(self, permission_id: str) -> PermissionResponse:
        try:
            row = self._fetch(permission_id)
        except APIError as e:
            raise_database_error(e, "fetch permission")
        if not row:
            raise _not_found()
        return PermissionResponse(**row)

    def create_permission(self, permission_data: PermissionCreate) -> PermissionResponse:
        """Create a permission after checking the name is free"""
        try:
            if self._find_by_name(permission_data.name):
                raise _duplicate_name(permission_data.name)

            result = self.supabase.table("permissions").insert({
                "name": permission_data.name,
                "description": permission_data.description,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create permission")

            logger.info("Created permission %s", permission_data.name)
            return PermissionResponse(**result.data[0])
        except APIError as e:
            # Lost a race with a concurrent insert of the same name
            if e.code == UNIQUE_VIOLATION:
                raise _duplicate_name(permission_data.name)
            raise_database_error(e, "create permission")

    def update_permission(self, permission_id: str, permission_data: PermissionUpdate) -> PermissionResponse:
        try:
            existing = self._fetch(permission_id)
            if not existing:
                raise _not_found()

            changes = permission_data.changes()
            new_name = changes.get("name")
            if new_name and new_name != existing["name"] and self._find_by_name(new_name, exclude_id=permission_id):
                raise _duplicate_name(new_name)

            result = self.supabase.table("permissions")\
                .update(changes)\
                .eq("id", permission_id)\
                .execute()

            if not result.data:
                raise _not_found()

            return PermissionResponse(**result.data[0])
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise _duplicate_name(permission_data.name or "")
            raise_database_error(e, "update permission")

    def delete_permission(self, permission_id: str) -> None:
        """Delete a permission that is not assigned to any role"""
        try:
            if not self._fetch(permission_id):
                raise _not_found()

            assigned = self.supabase.table("role_permissions")\
                .select("role_id")\
                .eq("permission_id", permission_id)\
                .limit(1)\
                .execute()

            if assigned.data:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={
                        "error": "Cannot delete permission",
                        "message": "This permission is currently assigned to one or more roles. "
                                   "Please remove all role assignments before deleting.",
                    },
                )

            self.supabase.table("permissions")\
                .delete()\
                .eq("id", permission_id)\
                .execute()
            logger.info("Deleted permission %s", permission_id)
        except APIError as e:
            if e.code == FOREIGN_KEY_VIOLATION:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={
                        "error": "Cannot delete permission",
                        "message": "This permission is referenced by other records and cannot be deleted.",
                    },
                )
            raise_database_error(e, "delete permission")

    def get_permission_roles(self, permission_id: str) -> List[PermissionRole]:
        """Roles that currently hold the permission"""
        try:
            if not self._fetch(permission_id):
                raise _not_found()
            result = self.supabase.table("role_permissions")\
                .select("role_id, roles(id, name)")\
                .eq("permission_id", permission_id)\
                .execute()
        except APIError as e:
            raise_database_error(e, "fetch permission roles")

        roles = [PermissionRole(**item["roles"]) for item in result.data or [] if item.get("roles")]
        return sorted(roles, key=lambda r: r.name.lower())
