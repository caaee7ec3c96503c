from supabase import Client
from postgrest.exceptions import APIError
from typing import Any, Callable, Dict, Optional
import logging

from rbac_console.core.errors import translate_database_error
from rbac_console.core.validation import validate_description, validate_name
from rbac_console.modules.assistant.schemas import AICommand, CommandExecutionResult, CommandType

logger = logging.getLogger(__name__)


def _failure(message: str, error: str) -> CommandExecutionResult:
    return CommandExecutionResult(success=False, message=message, error=error)


class CommandExecutor:
    """Applies a confirmed ``AICommand`` to the RBAC tables."""

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self._handlers: Dict[CommandType, Callable[[Dict[str, str]], CommandExecutionResult]] = {
            CommandType.create_permission: self.create_permission,
            CommandType.create_role: self.create_role,
            CommandType.assign_permission: self.assign_permission,
            CommandType.remove_permission: self.remove_permission,
            CommandType.delete_permission: self.delete_permission,
            CommandType.delete_role: self.delete_role,
        }

    def execute(self, command: AICommand) -> CommandExecutionResult:
        handler = self._handlers.get(command.type)
        if handler is None:
            return _failure("Unknown command type", f"Unsupported command type: {command.type.value}")

        logger.info("Executing %s with %s", command.type.value, command.parameters)
        try:
            return handler(command.parameters)
        except APIError as e:
            db_error = translate_database_error(e)
            logger.error("Database error executing %s: %s", command.type.value, db_error.message)
            return CommandExecutionResult(
                success=False,
                message=db_error.user_message or db_error.message,
                error=db_error.message,
                suggestions=db_error.suggestions,
            )

    def _find(self, table: str, name: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(table)\
            .select("id, name")\
            .eq("name", name)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _association_exists(self, role_id: str, permission_id: str) -> bool:
        result = self.supabase.table("role_permissions")\
            .select("role_id, permission_id")\
            .eq("role_id", role_id)\
            .eq("permission_id", permission_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def create_permission(self, params: Dict[str, str]) -> CommandExecutionResult:
        name = params.get("name")
        if not name:
            return _failure("Permission name is required", "Missing permission name")
        try:
            name = validate_name(name)
            description = validate_description(params.get("description"))
        except ValueError as e:
            return _failure("Invalid permission details", str(e))

        if self._find("permissions", name):
            return _failure(f'Permission "{name}" already exists', "Duplicate permission name")

        result = self.supabase.table("permissions").insert({
            "name": name,
            "description": description,
        }).execute()
        return CommandExecutionResult(
            success=True,
            message=f'Permission "{name}" created successfully',
            data=result.data[0] if result.data else None,
        )

    def create_role(self, params: Dict[str, str]) -> CommandExecutionResult:
        name = params.get("name")
        if not name:
            return _failure("Role name is required", "Missing role name")
        try:
            name = validate_name(name)
        except ValueError as e:
            return _failure("Invalid role details", str(e))

        if self._find("roles", name):
            return _failure(f'Role "{name}" already exists', "Duplicate role name")

        result = self.supabase.table("roles").insert({"name": name}).execute()
        return CommandExecutionResult(
            success=True,
            message=f'Role "{name}" created successfully',
            data=result.data[0] if result.data else None,
        )

    def _resolve_pair(self, params: Dict[str, str]):
        role_name = params.get("role_name")
        permission_name = params.get("permission_name")
        if not role_name or not permission_name:
            return None, None, _failure("Both role name and permission name are required", "Missing required parameters")

        role = self._find("roles", role_name)
        if not role:
            return None, None, _failure(f'Role "{role_name}" not found', "Role does not exist")
        permission = self._find("permissions", permission_name)
        if not permission:
            return None, None, _failure(f'Permission "{permission_name}" not found', "Permission does not exist")
        return role, permission, None

    def assign_permission(self, params: Dict[str, str]) -> CommandExecutionResult:
        role, permission, failure = self._resolve_pair(params)
        if failure:
            return failure

        if self._association_exists(role["id"], permission["id"]):
            return _failure(
                f'Role "{role["name"]}" already has permission "{permission["name"]}"',
                "Association already exists",
            )

        result = self.supabase.table("role_permissions").insert({
            "role_id": role["id"],
            "permission_id": permission["id"],
        }).execute()
        return CommandExecutionResult(
            success=True,
            message=f'Permission "{permission["name"]}" assigned to role "{role["name"]}" successfully',
            data=result.data[0] if result.data else None,
        )

    def remove_permission(self, params: Dict[str, str]) -> CommandExecutionResult:
        role, permission, failure = self._resolve_pair(params)
        if failure:
            return failure

        if not self._association_exists(role["id"], permission["id"]):
            return _failure(
                f'Role "{role["name"]}" does not have permission "{permission["name"]}"',
                "Association does not exist",
            )

        self.supabase.table("role_permissions")\
            .delete()\
            .eq("role_id", role["id"])\
            .eq("permission_id", permission["id"])\
            .execute()
        return CommandExecutionResult(
            success=True,
            message=f'Permission "{permission["name"]}" removed from role "{role["name"]}" successfully',
        )

    def delete_permission(self, params: Dict[str, str]) -> CommandExecutionResult:
        name = params.get("name")
        if not name:
            return _failure("Permission name is required", "Missing permission name")

        permission = self._find("permissions", name)
        if not permission:
            return _failure(f'Permission "{name}" not found', "Permission does not exist")

        self.supabase.table("role_permissions").delete().eq("permission_id", permission["id"]).execute()
        self.supabase.table("permissions").delete().eq("id", permission["id"]).execute()
        return CommandExecutionResult(success=True, message=f'Permission "{permission["name"]}" deleted successfully')

    def delete_role(self, params: Dict[str, str]) -> CommandExecutionResult:
        name = params.get("name")
        if not name:
            return _failure("Role name is required", "Missing role name")

        role = self._find("roles", name)
        if not role:
            return _failure(f'Role "{name}" not found', "Role does not exist")

        self.supabase.table("role_permissions").delete().eq("role_id", role["id"]).execute()
        self.supabase.table("roles").delete().eq("id", role["id"]).execute()
        return CommandExecutionResult(success=True, message=f'Role "{role["name"]}" deleted successfully')
