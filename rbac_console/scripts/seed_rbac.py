"""
Seed Permissions and Roles Script
Populates the permissions, roles and role_permissions tables from the default matrix.
Run with ``python -m rbac_console.scripts.seed_rbac``; safe to re-run.
"""

import logging
import sys
from typing import Dict, List

from postgrest.exceptions import APIError
from supabase import Client

from rbac_console.config.seed_data import PERMISSION_MATRIX
from rbac_console.database.supabase_client import get_supabase

logger = logging.getLogger(__name__)


def seed_permissions(supabase: Client, permissions: List[Dict]) -> Dict[str, int]:
    """Create missing permissions and refresh descriptions of existing ones"""
    logger.info("Seeding permissions...")
    created_count = 0
    updated_count = 0

    for perm in permissions:
        existing = supabase.table("permissions")\
            .select("id")\
            .eq("name", perm["name"])\
            .execute()

        if existing.data:
            supabase.table("permissions")\
                .update({"description": perm["description"]})\
                .eq("name", perm["name"])\
                .execute()
            updated_count += 1
            logger.debug("Updated permission: %s", perm["name"])
        else:
            supabase.table("permissions").insert({
                "name": perm["name"],
                "description": perm["description"],
            }).execute()
            created_count += 1
            logger.debug("Created permission: %s", perm["name"])

    logger.info("Permissions seeded: %d created, %d updated", created_count, updated_count)
    return {"created": created_count, "updated": updated_count}


def seed_roles(supabase: Client, roles: List[Dict]) -> Dict[str, int]:
    """Create missing roles and reconcile each role's permission set"""
    logger.info("Seeding roles...")
    created_count = 0
    existing_count = 0

    for role in roles:
        existing = supabase.table("roles")\
            .select("id")\
            .eq("name", role["name"])\
            .execute()

        if existing.data:
            role_id = existing.data[0]["id"]
            existing_count += 1
        else:
            result = supabase.table("roles").insert({"name": role["name"]}).execute()
            role_id = result.data[0]["id"]
            created_count += 1
            logger.debug("Created role: %s", role["name"])

        assign_permissions_to_role(supabase, role_id, role["name"], role["permissions"])

    logger.info("Roles seeded: %d created, %d already present", created_count, existing_count)
    return {"created": created_count, "existing": existing_count}


def assign_permissions_to_role(supabase: Client, role_id: str, role_name: str, permission_names: List[str]):
    """Make the role hold exactly the named permissions"""
    permission_result = supabase.table("permissions")\
        .select("id")\
        .in_("name", permission_names)\
        .execute()

    if not permission_result.data:
        logger.warning("No permissions found for role %s", role_name)
        return

    permission_ids = {p["id"] for p in permission_result.data}

    existing_result = supabase.table("role_permissions")\
        .select("permission_id")\
        .eq("role_id", role_id)\
        .execute()
    existing_permission_ids = {p["permission_id"] for p in existing_result.data or []}

    new_assignments = [
        {"role_id": role_id, "permission_id": pid}
        for pid in sorted(permission_ids - existing_permission_ids)
    ]
    if new_assignments:
        supabase.table("role_permissions").insert(new_assignments).execute()
        logger.debug("Assigned %d permissions to role %s", len(new_assignments), role_name)

    permissions_to_remove = existing_permission_ids - permission_ids
    if permissions_to_remove:
        supabase.table("role_permissions")\
            .delete()\
            .eq("role_id", role_id)\
            .in_("permission_id", sorted(permissions_to_remove))\
            .execute()
        logger.debug("Removed %d permissions from role %s", len(permissions_to_remove), role_name)


def seed(supabase: Client, matrix: Dict = PERMISSION_MATRIX) -> Dict[str, Dict[str, int]]:
    # Permissions first; role assignments look them up by name
    permissions = seed_permissions(supabase, matrix["permissions"])
    roles = seed_roles(supabase, matrix["roles"])
    return {"permissions": permissions, "roles": roles}


def main():
    logging.basicConfig(level=logging.INFO)
    try:
        logger.info("Starting permissions and roles seeding...")
        summary = seed(get_supabase())
        logger.info("Seeding completed: %s", summary)
    except APIError as e:
        logger.error("Error during seeding: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
