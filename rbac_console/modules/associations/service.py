from supabase import Client
from postgrest.exceptions import APIError
from fastapi import HTTPException, status
from typing import List, Optional
import logging

from rbac_console.core.errors import UNIQUE_VIOLATION, raise_database_error
from rbac_console.modules.associations.schemas import (
    AssociationResponse, AssociationDetail, BulkAssociationOperation, BulkOperation,
    BulkOperationDetails, BulkOperationResponse
)

logger = logging.getLogger(__name__)


def _already_exists() -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Association already exists")


class AssociationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _exists(self, table: str, row_id: str) -> bool:
        result = self.supabase.table(table).select("id").eq("id", row_id).limit(1).execute()
        return bool(result.data)

    def _link_exists(self, role_id: str, permission_id: str) -> bool:
        result = self.supabase.table("role_permissions")\
            .select("role_id")\
            .eq("role_id", role_id)\
            .eq("permission_id", permission_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def list_associations(
        self,
        role_id: Optional[str] = None,
        permission_id: Optional[str] = None
    ) -> List[AssociationDetail]:
        """All role-permission links with names, optionally narrowed to one role or permission"""
        try:
            query = self.supabase.table("role_permissions")\
                .select("role_id, permission_id, roles!inner(id, name), permissions!inner(id, name, description)")
            if role_id:
                query = query.eq("role_id", role_id)
            if permission_id:
                query = query.eq("permission_id", permission_id)
            result = query.execute()
        except APIError as e:
            raise_database_error(e, "list associations")

        associations = [
            AssociationDetail(
                role_id=item["roles"]["id"],
                role_name=item["roles"]["name"],
                permission_id=item["permissions"]["id"],
                permission_name=item["permissions"]["name"],
                permission_description=item["permissions"].get("description"),
            )
            for item in result.data or []
            if item.get("roles") and item.get("permissions")
        ]
        return sorted(associations, key=lambda a: (a.role_name.lower(), a.permission_name.lower()))

    def create_association(self, role_id: str, permission_id: str) -> AssociationResponse:
        try:
            if not self._exists("roles", role_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
            if not self._exists("permissions", permission_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
            if self._link_exists(role_id, permission_id):
                raise _already_exists()

            result = self.supabase.table("role_permissions").insert({
                "role_id": role_id,
                "permission_id": permission_id
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create association")

            logger.info("Assigned permission %s to role %s", permission_id, role_id)
            return AssociationResponse(**result.data[0])
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise _already_exists()
            raise_database_error(e, "create association")

    def delete_association(self, role_id: str, permission_id: str) -> None:
        try:
            if not self._link_exists(role_id, permission_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Association not found")

            self.supabase.table("role_permissions")\
                .delete()\
                .eq("role_id", role_id)\
                .eq("permission_id", permission_id)\
                .execute()
            logger.info("Removed permission %s from role %s", permission_id, role_id)
        except APIError as e:
            raise_database_error(e, "delete association")

    def bulk_operation(self, operation: BulkAssociationOperation) -> BulkOperationResponse:
        """Assign or unassign many permissions for one role"""
        role_id = operation.role_id
        permission_ids = operation.permission_ids
        try:
            if not self._exists("roles", role_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")

            found = self.supabase.table("permissions")\
                .select("id")\
                .in_("id", permission_ids)\
                .execute()
            found_ids = {p["id"] for p in found.data or []}
            missing = [pid for pid in permission_ids if pid not in found_ids]
            if missing:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail={"error": "Some permissions not found", "details": {"missing_permission_ids": missing}},
                )

            details = BulkOperationDetails(role_id=role_id, permission_ids=permission_ids, operation=operation.operation)

            if operation.operation == BulkOperation.assign:
                rows = [{"role_id": role_id, "permission_id": pid} for pid in permission_ids]
                result = self.supabase.table("role_permissions")\
                    .upsert(rows, on_conflict="role_id,permission_id")\
                    .execute()
                logger.info("Bulk assigned %d permissions to role %s", len(permission_ids), role_id)
                return BulkOperationResponse(
                    data=[AssociationResponse(**row) for row in result.data or []],
                    message=f"Successfully assigned {len(permission_ids)} permissions to role",
                    details=details,
                )

            self.supabase.table("role_permissions")\
                .delete()\
                .eq("role_id", role_id)\
                .in_("permission_id", permission_ids)\
                .execute()
            logger.info("Bulk unassigned %d permissions from role %s", len(permission_ids), role_id)
            return BulkOperationResponse(
                message=f"Successfully unassigned {len(permission_ids)} permissions from role",
                details=details,
            )
        except APIError as e:
            raise_database_error(e, f"bulk {operation.operation.value} permissions")
