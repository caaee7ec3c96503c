"""
Translation of PostgREST errors into HTTP errors.

Supabase surfaces database failures as ``postgrest.exceptions.APIError`` carrying
the Postgres SQLSTATE (or a PGRST code) in ``code``. Route handlers call
``raise_database_error`` so every module reports the same status codes and
user-facing messages.
"""

from fastapi import HTTPException
from postgrest.exceptions import APIError
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"
CHECK_VIOLATION = "23514"
CONNECTION_FAILURE = "08006"
TOO_MANY_CONNECTIONS = "53300"
NO_ROWS = "PGRST116"


class DatabaseError(Exception):
    """A database failure with an HTTP status and a message fit for end users."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        user_message: Optional[str] = None,
        details: Optional[str] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.user_message = user_message
        self.details = details
        self.recoverable = recoverable

    @property
    def suggestions(self) -> List[str]:
        return get_recovery_suggestions(self.code)


def translate_database_error(error: APIError) -> DatabaseError:
    code = getattr(error, "code", None)
    details = getattr(error, "details", None) or ""
    message = getattr(error, "message", None) or str(error)

    if code == UNIQUE_VIOLATION:
        if "permissions_name_key" in details:
            return DatabaseError("A permission with this name already exists", 409, code,
                                 "Please choose a different permission name.", details)
        if "roles_name_key" in details:
            return DatabaseError("A role with this name already exists", 409, code,
                                 "Please choose a different role name.", details)
        return DatabaseError("This record already exists", 409, code,
                             "A record with these details already exists. Please modify your input.", details)
    if code == FOREIGN_KEY_VIOLATION:
        return DatabaseError("Cannot delete this record because it is referenced by other records", 409, code,
                             "This item cannot be deleted because it is being used elsewhere. Remove all references first.",
                             details)
    if code == INSUFFICIENT_PRIVILEGE:
        return DatabaseError("You do not have permission to perform this action", 403, code,
                             "Access denied. Please contact your administrator if you believe this is an error.",
                             details, recoverable=False)
    if code == NO_ROWS:
        return DatabaseError("The requested record was not found", 404, code,
                             "The item you are looking for no longer exists or has been moved.", details)
    if code == CHECK_VIOLATION:
        return DatabaseError("Data validation failed", 400, code,
                             "The provided data does not meet the required format or constraints.", details)
    if code == CONNECTION_FAILURE:
        return DatabaseError("Database connection failed", 503, code,
                             "Unable to connect to the database. Please try again in a moment.", details)
    if code == TOO_MANY_CONNECTIONS:
        return DatabaseError("Too many database connections", 503, code,
                             "The system is currently busy. Please try again in a few moments.", details)
    return DatabaseError(message, 500, code,
                         "An unexpected database error occurred. Please try again.", details)


def raise_database_error(error: APIError, action: str) -> None:
    """Log and re-raise a PostgREST error as an HTTPException."""
    db_error = translate_database_error(error)
    logger.error("Database error while trying to %s: [%s] %s", action, db_error.code, error)
    raise HTTPException(
        status_code=db_error.status_code,
        detail={"error": db_error.message, "message": db_error.user_message},
    )


def get_recovery_suggestions(code: Optional[str]) -> List[str]:
    if code == UNIQUE_VIOLATION:
        return ["Try using a different name", "Check if a similar item already exists"]
    if code == FOREIGN_KEY_VIOLATION:
        return ["Remove all references to this item first", "Check which other items are using this"]
    if code == INSUFFICIENT_PRIVILEGE:
        return ["Contact your administrator for access", "Try logging out and back in"]
    if code == NO_ROWS:
        return ["Refresh the page to see current data", "Check if the item was moved or deleted"]
    if code in (CONNECTION_FAILURE, TOO_MANY_CONNECTIONS):
        return ["Check your internet connection", "Try again in a few moments",
                "Contact support if the problem persists"]
    return ["Try refreshing the page", "Contact support if the problem continues"]
