"""
Core dependencies for route protection
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from rbac_console.config.settings import settings
from rbac_console.database.supabase_client import get_auth_client
from rbac_console.modules.auth.service import AuthService
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_auth_client)) -> AuthService:
    return AuthService(supabase)


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[str]:
    """Access token from the Authorization header, falling back to the session cookie"""
    if credentials:
        return credentials.credentials
    return request.cookies.get(settings.access_token_cookie)


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Resolve the caller's session, refreshing it from the refresh cookie when the access token is stale.

    A refreshed session is stored on ``request.state.refreshed_session`` so
    ``SessionRefreshMiddleware`` can hand the new cookies back to the browser.
    """
    refresh_token = request.cookies.get(settings.refresh_token_cookie)
    if token:
        try:
            return auth_service.get_current_user(token)
        except HTTPException:
            if not refresh_token:
                raise _unauthenticated()
    if not refresh_token:
        raise _unauthenticated()

    try:
        session = auth_service.refresh_session(refresh_token)
    except HTTPException:
        request.state.clear_session = True
        raise _unauthenticated()
    request.state.refreshed_session = session
    return auth_service.get_current_user(session.access_token)


def is_admin(user_data: dict) -> bool:
    """Every authenticated user administers the console."""
    return bool(user_data.get("id"))


def require_admin(user_data: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user_data):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to perform this action",
        )
    return user_data
