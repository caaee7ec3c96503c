"""
Shared field rules for request schemas.

Names are identifiers (letters, digits, underscores, hyphens); descriptions are
free text that collapses to ``None`` when blank.
"""

import math
import re
import uuid
from fastapi import HTTPException, status
from pydantic import BaseModel, Field, ValidationError, field_validator
from typing import Dict, List, Optional

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
SEARCH_QUERY_MAX_LENGTH = 255
PAGE_SIZE_MAX = 100

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def is_valid_uuid(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def ensure_uuid(value: str, entity: str) -> str:
    """Raise 400 ``Invalid <entity> ID`` unless value is a UUID."""
    if not is_valid_uuid(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {entity} ID",
        )
    return value


def validate_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"Name must be less than {NAME_MAX_LENGTH} characters")
    if not NAME_PATTERN.match(value):
        raise ValueError("Name can only contain letters, numbers, underscores, and hyphens")
    return value


def validate_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description must be less than {DESCRIPTION_MAX_LENGTH} characters")
    return value.strip() or None


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches as a literal substring."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def validate_id(value: str) -> str:
    if not is_valid_uuid(value):
        raise ValueError("Invalid ID format")
    return value


class SearchParams(BaseModel):
    query: str = Field(default="", max_length=SEARCH_QUERY_MAX_LENGTH)
    limit: int = Field(default=50, ge=1, le=PAGE_SIZE_MAX)
    offset: int = Field(default=0, ge=0)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        return v.strip()


def format_validation_errors(exc) -> List[Dict[str, str]]:
    """Flatten pydantic errors into ``[{"field", "message"}]``."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": ".".join(loc), "message": message})
    return details


def get_search_params(query: str = "", limit: int = 50, offset: int = 0) -> SearchParams:
    try:
        return SearchParams(query=query, limit=limit, offset=offset)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid search parameters", "details": format_validation_errors(e)},
        )


class Pagination(BaseModel):
    page: int
    pageSize: int
    total: int
    totalPages: int


def build_pagination(total: int, limit: int, offset: int) -> Pagination:
    return Pagination(
        page=offset // limit + 1,
        pageSize=limit,
        total=total,
        totalPages=math.ceil(total / limit),
    )
