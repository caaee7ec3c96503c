# Supabase table: permissions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

permissions:
- id: uuid (primary key, default uuid_generate_v4())
- name: text (not null, unique) - e.g., "read_users", "write_reports"
- description: text (nullable)
- created_at: timestamptz (default: now())

Indexes: idx_permissions_name on (name)
Row level security: authenticated users may select; admins may insert/update/delete.
"""
