"""Main FastAPI application"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import traceback
import time
import uuid

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from app.config import settings
from app.core.database import init_db, SessionLocal
from app.core.exceptions import BaseAPIException
from app.schemas.response import HealthResponse
from app.api.v1 import auth, admin, users
from app.services.rate_limiter import LoginRateLimiter
from app.services.session_store import SQLSessionStore
from app.services.session_sweeper import session_sweeper, LIVE_SESSIONS_GAUGE
from app.services.token_service import TokenService


def configure_logging() -> None:
    """File + console logging; creates the log directory if needed"""
    log_file = settings.get_log_file()
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


configure_logging()
logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "sessionguard_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "sessionguard_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

# Process-wide auth state, shared by every request
app.state.token_service = TokenService.from_settings(settings)
app.state.login_rate_limiter = LoginRateLimiter(
    max_attempts=settings.LOGIN_RATE_LIMIT_ATTEMPTS,
    window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Token responses must not be cached.
    "Cache-Control": "no-store",
}


@app.middleware("http")
async def add_headers_and_timing(request: Request, call_next):
    """Security headers, request id and per-route metrics"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers.update(_SECURITY_HEADERS)
    response.headers["X-Request-ID"] = request_id

    # Labelled by route template, not raw path.
    route_path = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_COUNT.labels(request.method, route_path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, route_path).observe(elapsed)

    if elapsed > 1.0:
        logger.warning(
            "Slow request: %s %s took %.2fs request_id=%s",
            request.method, request.url.path, elapsed, request_id,
        )
    return response


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "error": message,
        "details": details,
        "path": request.url.path,
        "timestamp": datetime.utcnow().isoformat(),
    }
    return JSONResponse(status_code=status_code, content=body, headers=headers or None)


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Handle custom API exceptions"""
    logger.warning(
        "API exception %s on %s %s: %s",
        exc.status_code, request.method, request.url.path, exc.message,
    )
    return _error_response(request, exc.status_code, exc.message, exc.details, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors"""
    logger.error(
        "Database error on %s %s: %s\n%s",
        request.method, request.url.path, exc, traceback.format_exc(),
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.critical(
        "Unhandled exception on %s %s: %s\n%s",
        request.method, request.url.path, exc, traceback.format_exc(),
    )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


def bootstrap_admin() -> None:
    """Create the configured admin account if it doesn't exist"""
    from app.schemas.user import UserRole
    from app.services.user_service import UserService

    if not settings.ADMIN_PASSWORD:
        logger.info("ADMIN_PASSWORD not set; skipping admin bootstrap")
        return

    db = SessionLocal()
    try:
        users = UserService(db)
        if users.get_user_by_username(settings.ADMIN_USERNAME):
            return
        users.create_user(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
            role=UserRole.ADMIN,
        )
        logger.info(f"Created admin user: {settings.ADMIN_USERNAME}")
    finally:
        db.close()


@app.on_event("startup")
async def startup_event():
    """Validate configuration, check the schema, seed the admin, start the sweeper"""
    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    for name in settings.insecure_defaults():
        logger.warning(
            "%s is using the built-in development placeholder; tokens can be forged. "
            "Set it in the environment before exposing this service.",
            name,
        )

    try:
        init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    try:
        bootstrap_admin()
    except BaseAPIException as e:
        logger.error(f"Failed to create admin user: {e.message}")

    if settings.RUN_SESSION_SWEEPER:
        session_sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    if session_sweeper.is_running():
        session_sweeper.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Database reachability, sweeper liveness and live-session count"""
    database = {"ok": True, "error": None}
    live_sessions = 0
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        live_sessions = SQLSessionStore(db).count_live_sessions()
    except SQLAlchemyError as exc:
        database = {"ok": False, "error": str(exc)}
    finally:
        db.close()

    LIVE_SESSIONS_GAUGE.set(live_sessions)

    return HealthResponse(
        status="healthy" if database["ok"] else "degraded",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        readiness={
            "database": database,
            "session_sweeper": session_sweeper.status(),
            "live_sessions": live_sessions,
        },
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/api/docs" if settings.DEBUG else "disabled"
    }


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
