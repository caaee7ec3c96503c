from pydantic import BaseModel, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from rbac_console.core.validation import Pagination, validate_description, validate_name


class PermissionCreate(BaseModel):
    name: str
    description: Optional[str] = None

    check_name = field_validator("name")(validate_name)
    check_description = field_validator("description")(validate_description)


class PermissionUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    check_description = field_validator("description")(validate_description)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_name(v)

    @model_validator(mode="after")
    def require_one_field(self):
        if not self.changes():
            raise ValueError("At least one field must be provided for update")
        return self

    def changes(self) -> dict:
        """Fields the client actually sent; a null name means 'leave unchanged'."""
        data = {}
        if self.name is not None:
            data["name"] = self.name
        if "description" in self.model_fields_set:
            data["description"] = self.description
        return data


class PermissionResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PermissionListResponse(BaseModel):
    data: List[PermissionResponse]
    pagination: Pagination


class PermissionEnvelope(BaseModel):
    data: PermissionResponse
    message: Optional[str] = None


class PermissionRole(BaseModel):
    id: str
    name: str
