from fastapi import APIRouter, Depends
from rbac_console.database.supabase_client import get_supabase
from rbac_console.modules.permissions.schemas import (
    PermissionCreate, PermissionUpdate, PermissionListResponse, PermissionEnvelope, PermissionRole
)
from rbac_console.modules.permissions.service import PermissionService
from rbac_console.core.dependencies import require_admin
from rbac_console.core.validation import SearchParams, build_pagination, ensure_uuid, get_search_params
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/permissions", tags=["permissions"])


def get_permission_service(supabase: Client = Depends(get_supabase)) -> PermissionService:
    return PermissionService(supabase)


@router.get("", response_model=PermissionListResponse)
async def list_permissions(
    params: SearchParams = Depends(get_search_params),
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """List permissions, optionally searching name and description"""
    permissions, total = service.list_permissions(params)
    return {"data": permissions, "pagination": build_pagination(total, params.limit, params.offset)}


@router.post("", response_model=PermissionEnvelope, status_code=201)
async def create_permission(
    permission_data: PermissionCreate,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Create a new permission"""
    permission = service.create_permission(permission_data)
    return {"data": permission, "message": "Permission created successfully"}


@router.get("/{permission_id}", response_model=PermissionEnvelope)
async def get_permission(
    permission_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Get permission by ID"""
    ensure_uuid(permission_id, "permission")
    return {"data": service.get_permission(permission_id)}


@router.put("/{permission_id}", response_model=PermissionEnvelope)
async def update_permission(
    permission_id: str,
    permission_data: PermissionUpdate,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Rename or re-describe a permission"""
    ensure_uuid(permission_id, "permission")
    permission = service.update_permission(permission_id, permission_data)
    return {"data": permission, "message": "Permission updated successfully"}


@router.delete("/{permission_id}")
async def delete_permission(
    permission_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Delete a permission that no role holds"""
    ensure_uuid(permission_id, "permission")
    service.delete_permission(permission_id)
    return {"message": "Permission deleted successfully", "data": {"id": permission_id}}


@router.get("/{permission_id}/roles", response_model=List[PermissionRole])
async def get_permission_roles(
    permission_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionService = Depends(get_permission_service)
):
    """Roles holding the permission"""
    ensure_uuid(permission_id, "permission")
    return service.get_permission_roles(permission_id)
