from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError
from rbac_console.database.supabase_client import get_supabase
from rbac_console.modules.associations.schemas import (
    AssociationCreate, AssociationDelete, AssociationListResponse, AssociationEnvelope,
    BulkAssociationOperation, BulkOperationResponse
)
from rbac_console.modules.associations.service import AssociationService
from rbac_console.core.dependencies import require_admin
from rbac_console.core.validation import ensure_uuid, format_validation_errors
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/associations", tags=["associations"])


def get_association_service(supabase: Client = Depends(get_supabase)) -> AssociationService:
    return AssociationService(supabase)


@router.get("", response_model=AssociationListResponse)
async def list_associations(
    role_id: Optional[str] = None,
    permission_id: Optional[str] = None,
    user_data: Dict = Depends(require_admin),
    service: AssociationService = Depends(get_association_service)
):
    """List role-permission associations with role and permission names"""
    if role_id:
        ensure_uuid(role_id, "role")
    if permission_id:
        ensure_uuid(permission_id, "permission")
    return {"data": service.list_associations(role_id=role_id, permission_id=permission_id)}


@router.post("", response_model=AssociationEnvelope, status_code=201)
async def create_association(
    association: AssociationCreate,
    user_data: Dict = Depends(require_admin),
    service: AssociationService = Depends(get_association_service)
):
    """Assign a permission to a role"""
    data = service.create_association(association.role_id, association.permission_id)
    return {"data": data, "message": "Association created successfully"}


@router.delete("")
async def delete_association(
    role_id: Optional[str] = None,
    permission_id: Optional[str] = None,
    user_data: Dict = Depends(require_admin),
    service: AssociationService = Depends(get_association_service)
):
    """Remove a permission from a role; both ids come from the query string"""
    try:
        association = AssociationDelete(role_id=role_id or "", permission_id=permission_id or "")
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid input data", "details": format_validation_errors(e)},
        )
    service.delete_association(association.role_id, association.permission_id)
    return {
        "message": "Association deleted successfully",
        "data": {"role_id": association.role_id, "permission_id": association.permission_id},
    }


@router.post("/bulk", response_model=BulkOperationResponse)
async def bulk_associations(
    operation: BulkAssociationOperation,
    user_data: Dict = Depends(require_admin),
    service: AssociationService = Depends(get_association_service)
):
    """Bulk assign or unassign permissions for a role"""
    return service.bulk_operation(operation)
