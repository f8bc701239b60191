from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import time
import logging

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .api.v1.admin import router as admin_router
from .api.v1.appointments import router as appointments_router
from .api.v1.auth import router as auth_router
from .api.v1.doctors import router as doctors_router
from .api.v1.documents import router as documents_router
from .api.v1.notes import router as notes_router
from .api.v1.passkeys import router as passkeys_router
from .api.v1.patients import router as patients_router
from .core.config import settings
from .core.database import SessionLocal, get_redis, init_db
from .core.exceptions import ClinicError, NotFoundError, UpstreamError, ValidationError
from .services.notification_service import notifier
from .services.realtime import get_broker

# Configure logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Appointment booking and QR verification for the university clinic",
    openapi_url="/api/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Middleware setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Host checking is skipped under test
if not settings.TESTING:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

# Custom middleware for request logging and timing
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.4f}s"
    )

    return response

# Exception handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Bad Request", "message": exc.message}
    )

@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": "Not Found", "message": exc.message}
    )

@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    logger.error(
        f"Upstream failure on {request.url.path}: "
        f"message={exc.message} type={exc.error_type} code={exc.code}"
    )
    return JSONResponse(
        status_code=502,
        content={
            "success": False,
            "error": "Bad Gateway",
            "message": "A backing service failed. Please try again later."
        }
    )

@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    logger.error(f"Unhandled clinic error: {exc.message}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal Server Error", "message": exc.message}
    )

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "message": "The requested resource was not found",
            "path": str(request.url.path)
        }
    )

@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Internal server error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred"
        }
    )

# Include routers
for router in (
    auth_router,
    passkeys_router,
    appointments_router,
    admin_router,
    patients_router,
    notes_router,
    documents_router,
    doctors_router,
):
    app.include_router(router, prefix="/api")

_subscriptions = []

# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info(f"Starting {settings.APP_NAME}...")

    # Check database connection
    db_url = settings.get_database_url
    db_type = "PostgreSQL" if "postgresql" in db_url else "SQLite" if "sqlite" in db_url else "Unknown"
    logger.info(f"Using {db_type} database")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    if not _subscriptions:
        _subscriptions.append(notifier.register(get_broker()))
        logger.info("SMS notifier subscribed to appointment updates")

    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown."""
    while _subscriptions:
        _subscriptions.pop()()
    logger.info(f"Shutting down {settings.APP_NAME}...")

# Health check endpoint
@app.get("/health")
async def health_check():
    """Liveness plus a quick probe of the database and Redis."""
    checks = {}

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {str(e)}")
        checks["database"] = "unavailable"
    finally:
        db.close()

    try:
        get_redis().ping()
        checks["redis"] = "ok"
    except RedisError as e:
        logger.error(f"Health check redis probe failed: {str(e)}")
        checks["redis"] = "unavailable"

    healthy = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "checks": checks,
            "timestamp": time.time(),
            "version": settings.VERSION
        }
    )

# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to the {settings.CLINIC_NAME} clinic booking API",
        "version": settings.VERSION,
        "api": "/api",
        "docs": "/docs",
        "health": "/health"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clinic_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
