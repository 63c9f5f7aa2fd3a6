from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from academy.core.limits import limiter, rate_limit_handler
from academy.core.init_db import init_database
from academy.core.error_handlers import setup_exception_handlers
from academy.core.database import db_manager
from academy.core.middleware import setup_middleware
from academy.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from academy.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
)

from academy.staff.routers import branches as staff_branches
from academy.staff.routers import coaches as staff_coaches
from academy.staff.routers import packages as staff_packages
from academy.staff.routers import sessions as staff_sessions
from academy.staff.routers import dashboard as staff_dashboard
from academy.students.routers import students as student_records
from academy.students.routers import attendance as student_attendance
from academy.students.routers import payments as student_payments

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown"""

    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("Configuration validated")

        await init_database()
        logger.info("Database initialized")

        log_business_event(
            "application_started",
            "system",
            0,
            {"version": APP_VERSION, "environment": ENVIRONMENT},
        )

        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("Shutting down application...")

    try:
        await db_manager.close_connections()
        logger.info("Database connections closed")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}")

    logger.info("Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Basketball academy management: students, coaches, sessions, attendance and payments",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 5.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(staff_branches.router, prefix="/api/v1")
app.include_router(staff_coaches.router, prefix="/api/v1")
app.include_router(staff_packages.router, prefix="/api/v1")
app.include_router(staff_sessions.router, prefix="/api/v1")
app.include_router(staff_dashboard.router, prefix="/api/v1")
app.include_router(student_records.router, prefix="/api/v1")
app.include_router(student_attendance.router, prefix="/api/v1")
app.include_router(student_payments.router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a database round trip"""
    try:
        await db_manager.check_connection()
        database = "ok"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {str(e)}")
        database = "unavailable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": APP_VERSION,
        "database": database,
    }
