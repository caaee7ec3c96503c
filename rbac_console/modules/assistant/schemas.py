from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional


class CommandType(str, Enum):
    create_permission = "create_permission"
    create_role = "create_role"
    assign_permission = "assign_permission"
    remove_permission = "remove_permission"
    delete_permission = "delete_permission"
    delete_role = "delete_role"
    unknown = "unknown"


class AICommand(BaseModel):
    type: CommandType
    parameters: Dict[str, str] = {}
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> Any:
        if isinstance(v, CommandType):
            return v
        try:
            return CommandType(v)
        except ValueError:
            return CommandType.unknown

    @field_validator("parameters", mode="before")
    @classmethod
    def stringify_parameters(cls, v: Any) -> Any:
        # Models sometimes emit nulls or numbers for optional fields
        if not isinstance(v, dict):
            return v
        return {str(k): str(val).strip() for k, val in v.items() if val is not None and str(val).strip()}


class AIResponse(BaseModel):
    success: bool
    command: Optional[AICommand] = None
    message: str
    error: Optional[str] = None
    suggestions: Optional[List[str]] = None


class ContextPermission(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class ContextRole(BaseModel):
    id: str
    name: str


class ContextAssociation(BaseModel):
    role_id: str
    permission_id: str


class RBACContext(BaseModel):
    permissions: List[ContextPermission] = []
    roles: List[ContextRole] = []
    associations: List[ContextAssociation] = []


class CommandExecutionResult(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None
    suggestions: Optional[List[str]] = None


class CommandValidation(BaseModel):
    valid: bool
    errors: List[str] = []
    suggestions: List[str] = []


class AICommandResult(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None
    data: Optional[Any] = None
    parsedCommand: Optional[AICommand] = None
    suggestions: Optional[List[str]] = None


class ProcessCommandRequest(BaseModel):
    command: str


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class HelpResponse(BaseModel):
    helpText: str


class AvailabilityResponse(BaseModel):
    available: bool
    message: str
