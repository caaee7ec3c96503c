from fastapi import APIRouter, Depends, HTTPException, Request, Response
from rbac_console.config.settings import settings
from rbac_console.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, RefreshRequest
)
from rbac_console.modules.auth.service import AuthService
from rbac_console.core.dependencies import get_auth_service, get_current_user, get_session_token, is_admin
from rbac_console.core.middleware import set_session_cookies, clear_session_cookies
from typing import Dict, Optional

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service)
):
    """Login, set the session cookies and return the tokens"""
    token = service.login(login_data)
    set_session_cookies(response, token.access_token, token.refresh_token, token.expires_in)
    return token


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    response: Response,
    refresh_data: Optional[RefreshRequest] = None,
    service: AuthService = Depends(get_auth_service)
):
    """Rotate the session using the refresh token from the body or the session cookie"""
    refresh_token = (refresh_data.refresh_token if refresh_data else None) \
        or request.cookies.get(settings.refresh_token_cookie)
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Authentication required")
    token = service.refresh_session(refresh_token)
    set_session_cookies(response, token.access_token, token.refresh_token, token.expires_in)
    return token


@router.post("/logout", status_code=200)
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and clear the session cookies"""
    if token:
        service.logout(token)
    clear_session_cookies(response)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(current_user: Dict = Depends(get_current_user)):
    """Get the current authenticated user"""
    return {**current_user, "is_admin": is_admin(current_user)}
