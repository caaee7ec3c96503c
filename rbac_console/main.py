import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from rbac_console.config.settings import settings
from rbac_console.core.middleware import SecurityHeadersMiddleware, SessionRefreshMiddleware
from rbac_console.core.rate_limit import limiter
from rbac_console.core.validation import format_validation_errors
from rbac_console.modules.auth import routes as auth_routes
from rbac_console.modules.permissions import routes as permissions_routes
from rbac_console.modules.roles import routes as roles_routes
from rbac_console.modules.associations import routes as associations_routes
from rbac_console.modules.dashboard import routes as dashboard_routes
from rbac_console.modules.assistant import routes as assistant_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    # Services raise either a plain message or a ready-made {"error", ...} body
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input data", "details": format_validation_errors(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


app.add_middleware(SessionRefreshMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api")
app.include_router(permissions_routes.router, prefix="/api")
app.include_router(roles_routes.router, prefix="/api")
app.include_router(associations_routes.router, prefix="/api")
app.include_router(dashboard_routes.router, prefix="/api")
app.include_router(assistant_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup (environment=%s, ai_enabled=%s)", settings.environment, settings.ai_enabled)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/api/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    return {"status": "ready"}
