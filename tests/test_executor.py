"""Unit tests for applying confirmed commands to the RBAC tables."""

from __future__ import annotations

import pytest

from rbac_console.modules.assistant.executor import CommandExecutor
from rbac_console.modules.assistant.schemas import AICommand
from conftest import FakeSupabase, api_error


def _command(command_type: str, **parameters: str) -> AICommand:
    return AICommand(type=command_type, parameters=parameters, confidence=0.95)


@pytest.fixture()
def executor(seeded_db: FakeSupabase) -> CommandExecutor:
    return CommandExecutor(seeded_db)


class TestCreate:
    def test_create_permission(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        result = executor.execute(_command("create_permission", name="export_data", description="Export data"))
        assert result.success is True
        assert result.message == 'Permission "export_data" created successfully'
        assert result.data["description"] == "Export data"
        assert "export_data" in seeded_db.names("permissions")

    def test_create_permission_duplicate(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("create_permission", name="read_users"))
        assert result.success is False
        assert result.message == 'Permission "read_users" already exists'
        assert result.error == "Duplicate permission name"

    def test_create_permission_bad_name(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("create_permission", name="export data"))
        assert result.success is False
        assert "letters, numbers, underscores, and hyphens" in result.error

    def test_create_role(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        result = executor.execute(_command("create_role", name="Auditor"))
        assert result.message == 'Role "Auditor" created successfully'
        assert "Auditor" in seeded_db.names("roles")

    def test_create_role_missing_name(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("create_role"))
        assert result.message == "Role name is required"
        assert result.error == "Missing role name"


class TestAssociations:
    def test_assign(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        result = executor.execute(_command("assign_permission", role_name="Viewer", permission_name="read_users"))
        assert result.success is True
        assert result.message == 'Permission "read_users" assigned to role "Viewer" successfully'
        assert seeded_db.permissions_of("Viewer") == ["read_reports", "read_users"]

    def test_assign_existing(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("assign_permission", role_name="Viewer", permission_name="read_reports"))
        assert result.message == 'Role "Viewer" already has permission "read_reports"'
        assert result.error == "Association already exists"

    def test_assign_unknown_role(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("assign_permission", role_name="Ghost", permission_name="read_reports"))
        assert result.message == 'Role "Ghost" not found'
        assert result.error == "Role does not exist"

    def test_assign_missing_parameters(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("assign_permission", role_name="Viewer"))
        assert result.message == "Both role name and permission name are required"

    def test_remove(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        result = executor.execute(_command("remove_permission", role_name="User", permission_name="read_users"))
        assert result.message == 'Permission "read_users" removed from role "User" successfully'
        assert seeded_db.permissions_of("User") == ["read_reports"]

    def test_remove_absent(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("remove_permission", role_name="Viewer", permission_name="admin_access"))
        assert result.message == 'Role "Viewer" does not have permission "admin_access"'
        assert result.error == "Association does not exist"


class TestDelete:
    def test_delete_permission_removes_links_first(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        permission_id = seeded_db.id_of("permissions", "read_reports")
        result = executor.execute(_command("delete_permission", name="read_reports"))
        assert result.message == 'Permission "read_reports" deleted successfully'
        assert "read_reports" not in seeded_db.names("permissions")
        assert all(rp["permission_id"] != permission_id for rp in seeded_db.tables["role_permissions"])

    def test_delete_role(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        result = executor.execute(_command("delete_role", name="Viewer"))
        assert result.message == 'Role "Viewer" deleted successfully'
        assert seeded_db.names("roles") == ["Admin", "Manager", "User"]

    def test_delete_missing(self, executor: CommandExecutor) -> None:
        assert executor.execute(_command("delete_role", name="Ghost")).message == 'Role "Ghost" not found'
        assert executor.execute(_command("delete_permission", name="ghost")).message == 'Permission "ghost" not found'


class TestFailures:
    def test_unknown_type(self, executor: CommandExecutor) -> None:
        result = executor.execute(_command("unknown"))
        assert result.success is False
        assert result.message == "Unknown command type"
        assert result.error == "Unsupported command type: unknown"

    def test_database_error_becomes_result(self, executor: CommandExecutor, seeded_db: FakeSupabase) -> None:
        seeded_db.fail("roles", "insert", api_error("42501", "permission denied for table roles"))
        result = executor.execute(_command("create_role", name="Auditor"))
        assert result.success is False
        assert result.error == "You do not have permission to perform this action"
        assert result.suggestions == ["Contact your administrator for access", "Try logging out and back in"]
