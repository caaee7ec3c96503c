from pydantic import BaseModel, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from rbac_console.core.validation import Pagination, validate_name
from rbac_console.modules.permissions.schemas import PermissionResponse


class RoleCreate(BaseModel):
    name: str

    check_name = field_validator("name")(validate_name)


class RoleUpdate(BaseModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_name(v)

    @model_validator(mode="after")
    def require_one_field(self):
        if self.name is None:
            raise ValueError("At least one field must be provided for update")
        return self


class RoleResponse(BaseModel):
    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class RoleWithPermissionsResponse(BaseModel):
    id: str
    name: str
    permissions: List[PermissionResponse]
    created_at: datetime

    class Config:
        from_attributes = True


class RoleListResponse(BaseModel):
    data: List[RoleResponse]
    pagination: Pagination


class RoleEnvelope(BaseModel):
    data: RoleResponse
    message: Optional[str] = None
