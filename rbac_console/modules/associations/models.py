# Supabase table: role_permissions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

role_permissions:
- role_id: uuid (foreign key to roles.id, on delete cascade)
- permission_id: uuid (foreign key to permissions.id, on delete cascade)
- created_at: timestamptz (default: now())
- primary key (role_id, permission_id)

Indexes: idx_role_permissions_role_id, idx_role_permissions_permission_id
"""
