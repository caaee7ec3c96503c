# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required - Supabase Auth handles:
# - User registration (auth.users table)
# - User login and session management
# - JWT access token issuing and refresh token rotation

"""
Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.refresh_session() - Exchange a refresh token for a new session
- auth.sign_out() - Logout users

The console keeps the session in two cookies (access and refresh token) so a
browser client never has to handle the tokens itself; API clients may send
the access token as a Bearer header instead.

user_roles (read only here):
- user_id: uuid (foreign key to auth.users.id, on delete cascade)
- role_id: uuid (foreign key to roles.id, on delete cascade)
- created_at: timestamptz (default: now())
- primary key (user_id, role_id)

Every authenticated user is treated as an administrator of the console.
"""
