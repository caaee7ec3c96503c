# Supabase table: roles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

roles:
- id: uuid (primary key, default uuid_generate_v4())
- name: text (not null, unique) - e.g., "Admin", "Manager", "Viewer"
- created_at: timestamptz (default: now())

Indexes: idx_roles_name on (name)

Deleting a role cascades to role_permissions and user_roles through their
ON DELETE CASCADE foreign keys.
"""
