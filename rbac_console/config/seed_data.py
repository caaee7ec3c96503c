"""
Default Permissions and Roles
Defines the starter permission matrix loaded into a fresh database.
Used by the seed script; re-running it reconciles roles back to this matrix.
"""

# Resources and the actions that can be granted on them
RESOURCES = {
    "users": {
        "actions": ["read", "write", "delete"],
        "descriptions": {
            "read": "Permission to view user information",
            "write": "Permission to create and update users",
            "delete": "Permission to delete users",
        },
    },
    "reports": {
        "actions": ["read", "write"],
        "descriptions": {
            "read": "Permission to view reports",
            "write": "Permission to create and update reports",
        },
    },
}

# Permissions that do not belong to a single resource
GLOBAL_PERMISSIONS = {
    "admin_access": "Full administrative access to the system",
}

# Role tiers: which actions each role receives on every resource
ROLE_TIERS = {
    "Admin": {"actions": ["read", "write", "delete"], "global": ["admin_access"]},
    "Manager": {"actions": ["read", "write"], "global": []},
    "User": {"actions": ["read"], "global": []},
}

# Roles scoped to specific permissions rather than a tier
EXPLICIT_ROLES = {
    "Viewer": ["read_reports"],
}


def permission_name(resource: str, action: str) -> str:
    return f"{action}_{resource}"


def get_permission_matrix():
    """
    Returns the default matrix
    Format: {
        "permissions": [{"name": "read_users", "description": "..."}, ...],
        "roles": [{"name": "Admin", "permissions": ["admin_access", "delete_users", ...]}, ...]
    }
    """
    permissions = []
    for resource, config in RESOURCES.items():
        for action in config["actions"]:
            permissions.append({
                "name": permission_name(resource, action),
                "description": config["descriptions"][action],
            })
    for name, description in GLOBAL_PERMISSIONS.items():
        permissions.append({"name": name, "description": description})

    roles = []
    for role_name, tier in ROLE_TIERS.items():
        role_permissions = [
            permission_name(resource, action)
            for resource, config in RESOURCES.items()
            for action in tier["actions"]
            if action in config["actions"]
        ]
        role_permissions.extend(tier["global"])
        roles.append({"name": role_name, "permissions": sorted(role_permissions)})
    for role_name, names in EXPLICIT_ROLES.items():
        roles.append({"name": role_name, "permissions": sorted(names)})

    return {
        "permissions": permissions,
        "roles": roles,
    }


PERMISSION_MATRIX = get_permission_matrix()
