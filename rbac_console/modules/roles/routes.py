from fastapi import APIRouter, Depends
from rbac_console.database.supabase_client import get_supabase
from rbac_console.modules.permissions.schemas import PermissionResponse
from rbac_console.modules.roles.schemas import (
    RoleCreate, RoleUpdate, RoleListResponse, RoleEnvelope, RoleWithPermissionsResponse
)
from rbac_console.modules.roles.service import RoleService
from rbac_console.core.dependencies import require_admin
from rbac_console.core.validation import SearchParams, build_pagination, ensure_uuid, get_search_params
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/roles", tags=["roles"])


def get_role_service(supabase: Client = Depends(get_supabase)) -> RoleService:
    return RoleService(supabase)


@router.get("", response_model=RoleListResponse)
async def list_roles(
    params: SearchParams = Depends(get_search_params),
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """List roles, optionally searching by name"""
    roles, total = service.list_roles(params)
    return {"data": roles, "pagination": build_pagination(total, params.limit, params.offset)}


@router.post("", response_model=RoleEnvelope, status_code=201)
async def create_role(
    role_data: RoleCreate,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Create a new role"""
    return {"data": service.create_role(role_data), "message": "Role created successfully"}


@router.get("/{role_id}", response_model=RoleEnvelope)
async def get_role(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get role by ID"""
    ensure_uuid(role_id, "role")
    return {"data": service.get_role(role_id)}


@router.get("/{role_id}/with-permissions", response_model=RoleWithPermissionsResponse)
async def get_role_with_permissions(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get role with all associated permissions"""
    ensure_uuid(role_id, "role")
    return service.get_role_with_permissions(role_id)


@router.get("/{role_id}/permissions", response_model=List[PermissionResponse])
async def get_role_permissions(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Get all permissions for a role"""
    ensure_uuid(role_id, "role")
    return service.get_role_permissions(role_id)


@router.put("/{role_id}", response_model=RoleEnvelope)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Rename a role"""
    ensure_uuid(role_id, "role")
    return {"data": service.update_role(role_id, role_data), "message": "Role updated successfully"}


@router.delete("/{role_id}")
async def delete_role(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Delete a role together with its associations"""
    ensure_uuid(role_id, "role")
    service.delete_role(role_id)
    return {"message": "Role deleted successfully", "data": {"id": role_id}}
