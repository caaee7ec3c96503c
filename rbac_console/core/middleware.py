from starlette.responses import Response
from rbac_console.config.settings import settings

SECURITY_HEADERS = [
    (b"X-Content-Type-Options", b"nosniff"),
    (b"X-Frame-Options", b"DENY"),
    (b"X-XSS-Protection", b"1; mode=block"),
    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
]


def set_session_cookies(response: Response, access_token: str, refresh_token: str = None, max_age: int = None):
    response.set_cookie(
        settings.access_token_cookie,
        access_token,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
    if refresh_token:
        response.set_cookie(
            settings.refresh_token_cookie,
            refresh_token,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


def clear_session_cookies(response: Response):
    response.delete_cookie(settings.access_token_cookie)
    response.delete_cookie(settings.refresh_token_cookie)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(SECURITY_HEADERS)
            await send(message)

        await self.app(scope, receive, send_with_headers)


class SessionRefreshMiddleware:
    """Writes rotated session cookies onto the response.

    The auth dependency refreshes an expired session and leaves the new tokens
    in ``request.state``; this middleware reads them back out of the ASGI scope
    once the response starts, whatever the route returned.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_cookies(message):
            if message["type"] == "http.response.start":
                state = scope.get("state") or {}
                cookies = Response()
                session = state.get("refreshed_session")
                if session is not None:
                    set_session_cookies(cookies, session.access_token, session.refresh_token, session.expires_in)
                elif state.get("clear_session"):
                    clear_session_cookies(cookies)
                set_cookie_headers = [h for h in cookies.raw_headers if h[0] == b"set-cookie"]
                if set_cookie_headers:
                    message.setdefault("headers", [])
                    message["headers"] = list(message["headers"]) + set_cookie_headers
            await send(message)

        await self.app(scope, receive, send_with_cookies)
