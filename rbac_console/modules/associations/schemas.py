from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from rbac_console.core.validation import validate_id


class AssociationCreate(BaseModel):
    role_id: str
    permission_id: str

    check_role_id = field_validator("role_id")(validate_id)
    check_permission_id = field_validator("permission_id")(validate_id)


class AssociationDelete(AssociationCreate):
    pass


class BulkOperation(str, Enum):
    assign = "assign"
    unassign = "unassign"


class BulkAssociationOperation(BaseModel):
    role_id: str
    permission_ids: List[str] = Field(min_length=1)
    operation: BulkOperation

    check_role_id = field_validator("role_id")(validate_id)

    @field_validator("permission_ids")
    @classmethod
    def check_permission_ids(cls, v: List[str]) -> List[str]:
        for permission_id in v:
            validate_id(permission_id)
        # Keep first occurrence order, drop repeats
        return list(dict.fromkeys(v))


class AssociationResponse(BaseModel):
    role_id: str
    permission_id: str
    created_at: Optional[datetime] = None


class AssociationDetail(BaseModel):
    role_id: str
    role_name: str
    permission_id: str
    permission_name: str
    permission_description: Optional[str] = None


class AssociationListResponse(BaseModel):
    data: List[AssociationDetail]


class AssociationEnvelope(BaseModel):
    data: AssociationResponse
    message: Optional[str] = None


class BulkOperationDetails(BaseModel):
    role_id: str
    permission_ids: List[str]
    operation: BulkOperation


class BulkOperationResponse(BaseModel):
    data: List[AssociationResponse] = []
    message: str
    details: BulkOperationDetails
