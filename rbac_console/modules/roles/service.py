from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional, Tuple
import logging

from rbac_console.core.errors import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION, raise_database_error
from rbac_console.core.validation import SearchParams, escape_like
from rbac_console.modules.permissions.schemas import PermissionResponse
from rbac_console.modules.roles.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleWithPermissionsResponse
)

logger = logging.getLogger(__name__)


def _duplicate_name(name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "Role name already exists",
            "message": f'A role with the name "{name}" already exists. Please choose a different name.',
        },
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")


class RoleService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _fetch(self, role_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("roles")\
            .select("*")\
            .eq("id", role_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _find_by_name(self, name: str, exclude_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.supabase.table("roles").select("id").eq("name", name)
        if exclude_id:
            query = query.neq("id", exclude_id)
        result = query.limit(1).execute()
        return result.data[0] if result.data else None

    def list_roles(self, params: SearchParams) -> Tuple[List[RoleResponse], int]:
        """List roles ordered by name, filtered by name substring"""
        try:
            query = self.supabase.table("roles")\
                .select("*", count="exact")\
                .order("name")
            if params.query:
                query = query.ilike("name", f"%{escape_like(params.query)}%")
            result = query.range(params.offset, params.offset + params.limit - 1).execute()
            return [RoleResponse(**role) for role in result.data or []], result.count or 0
        except APIError as e:
            raise_database_error(e, "list roles")

    def get_role(self, role_id: str) -> RoleResponse:
        try:
            row = self._fetch(role_id)
        except APIError as e:
            raise_database_error(e, "fetch role")
        if not row:
            raise _not_found()
        return RoleResponse(**row)

    def create_role(self, role_data: RoleCreate) -> RoleResponse:
        """Create a role after checking the name is free"""
        try:
            if self._find_by_name(role_data.name):
                raise _duplicate_name(role_data.name)

            result = self.supabase.table("roles").insert({"name": role_data.name}).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create role")

            logger.info("Created role %s", role_data.name)
            return RoleResponse(**result.data[0])
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise _duplicate_name(role_data.name)
            raise_database_error(e, "create role")

    def update_role(self, role_id: str, role_data: RoleUpdate) -> RoleResponse:
        try:
            existing = self._fetch(role_id)
            if not existing:
                raise _not_found()

            if role_data.name != existing["name"] and self._find_by_name(role_data.name, exclude_id=role_id):
                raise _duplicate_name(role_data.name)

            result = self.supabase.table("roles")\
                .update({"name": role_data.name})\
                .eq("id", role_id)\
                .execute()

            if not result.data:
                raise _not_found()

            return RoleResponse(**result.data[0])
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise _duplicate_name(role_data.name)
            raise_database_error(e, "update role")

    def delete_role(self, role_id: str) -> None:
        """Delete a role; its permission links and user assignments go with it"""
        try:
            if not self._fetch(role_id):
                raise _not_found()

            linked_permissions = self.supabase.table("role_permissions")\
                .select("permission_id", count="exact")\
                .eq("role_id", role_id)\
                .limit(1)\
                .execute()
            assigned_users = self.supabase.table("user_roles")\
                .select("user_id", count="exact")\
                .eq("role_id", role_id)\
                .limit(1)\
                .execute()

            permission_count = linked_permissions.count or 0
            user_count = assigned_users.count or 0
            if permission_count or user_count:
                logger.info(
                    "Cascade deleting role %s with %d permission associations and %d user assignments",
                    role_id, permission_count, user_count,
                )

            self.supabase.table("roles")\
                .delete()\
                .eq("id", role_id)\
                .execute()
        except APIError as e:
            if e.code == FOREIGN_KEY_VIOLATION:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={
                        "error": "Cannot delete role",
                        "message": "This role is referenced by other records and cannot be deleted.",
                    },
                )
            raise_database_error(e, "delete role")

    def get_role_permissions(self, role_id: str) -> List[PermissionResponse]:
        """Get all permissions for a role, ordered by name"""
        try:
            if not self._fetch(role_id):
                raise _not_found()
            result = self.supabase.table("role_permissions")\
                .select("permission_id, permissions(*)")\
                .eq("role_id", role_id)\
                .execute()
        except APIError as e:
            raise_database_error(e, "fetch role permissions")

        permissions = [
            PermissionResponse(**item["permissions"])
            for item in result.data or []
            if item.get("permissions")
        ]
        return sorted(permissions, key=lambda p: p.name.lower())

    def get_role_with_permissions(self, role_id: str) -> RoleWithPermissionsResponse:
        role = self.get_role(role_id)
        return RoleWithPermissionsResponse(
            **role.model_dump(),
            permissions=self.get_role_permissions(role_id),
        )
