import hashlib
import time
import logging
from supabase import Client
from rbac_console.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from fastapi import HTTPException
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class _UserCache:
    """Short-lived token -> user map so parallel requests share one Supabase lookup.

    Keys are SHA-256 digests; raw tokens are never held.
    """

    def __init__(self, ttl_seconds: int = 60, max_size: int = 500):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries: Dict[str, Tuple[Dict[str, Any], float]] = {}

    @staticmethod
    def _key(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        key = self._key(token)
        entry = self._entries.get(key)
        if entry is None:
            return None
        user_data, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return user_data

    def put(self, token: str, user_data: Dict[str, Any]):
        if len(self._entries) < self.max_size:
            self._entries[self._key(token)] = (user_data, time.monotonic() + self.ttl_seconds)

    def drop(self, token: str):
        self._entries.pop(self._key(token), None)

    def clear(self):
        self._entries.clear()


_user_cache = _UserCache()


def clear_user_cache():
    _user_cache.clear()


def _mentions(error: Exception, *needles: str) -> bool:
    text = str(error).lower()
    return any(needle.lower() in text for needle in needles)


def _user_to_dict(user) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": user.user_metadata or {},
        "app_metadata": user.app_metadata or {},
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def _session_to_token(session, user, fallback_email: str = "") -> TokenResponse:
    return TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user_id=user.id,
        email=user.email or fallback_email,
    )


class AuthService:
    """Thin wrapper over Supabase Auth used by the auth routes and the session gateway."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        metadata = {"full_name": register_data.full_name} if register_data.full_name else {}
        try:
            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {"data": metadata},
            })
        except Exception as e:
            if _mentions(e, "already registered", "already exists"):
                raise HTTPException(status_code=400, detail="User already exists")
            raise HTTPException(status_code=500, detail=f"Registration failed: {e}")

        if not auth_response.user:
            raise HTTPException(status_code=400, detail="Failed to register user")
        logger.info("Registered user %s", auth_response.user.id)
        return RegisterResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or register_data.email,
            message="User registered successfully",
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password,
            })
        except Exception as e:
            if _mentions(e, "invalid", "credentials"):
                raise HTTPException(status_code=401, detail="Invalid email or password")
            raise HTTPException(status_code=500, detail=f"Login failed: {e}")

        if not auth_response.user or not auth_response.session:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        return _session_to_token(auth_response.session, auth_response.user, login_data.email)

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve a Supabase access token to the user, served from the cache while fresh."""
        cached = _user_cache.get(token)
        if cached is not None:
            return cached

        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            if "JWT" in str(e) or _mentions(e, "expired", "invalid"):
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")

        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        user_data = _user_to_dict(user_response.user)
        _user_cache.put(token, user_data)
        return user_data

    def refresh_session(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new session"""
        try:
            auth_response = self.supabase.auth.refresh_session(refresh_token)
        except Exception as e:
            logger.info("Session refresh rejected: %s", e)
            raise HTTPException(status_code=401, detail="Session expired")

        if not auth_response.user or not auth_response.session:
            raise HTTPException(status_code=401, detail="Session expired")
        logger.debug("Refreshed session for user %s", auth_response.user.id)
        token = _session_to_token(auth_response.session, auth_response.user)
        _user_cache.put(token.access_token, _user_to_dict(auth_response.user))
        return token

    def logout(self, token: str) -> bool:
        _user_cache.drop(token)
        try:
            # Access tokens are stateless JWTs; they stay valid until expiry
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning("Supabase sign out failed: %s", e)
            return False
