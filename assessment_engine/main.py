"""
Main FastAPI application.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from assessment_engine.api.v1 import api_router
from assessment_engine.core.assessment.expiry_watchdog import ExpiryWatchdog
from assessment_engine.core.config import settings
from assessment_engine.core.exceptions import (
    AssessmentEngineError,
    AssessmentNotFound,
    AttemptAlreadyActive,
    AttemptLimitExceeded,
    AttemptNotActive,
    AttemptNotFound,
    QuestionNotInAssessment,
)
from assessment_engine.db.base import engine, SessionLocal
from assessment_engine.models import Base
from assessment_engine.schemas.common import ErrorResponse
from assessment_engine.services.security_recorder import SecurityEventRecorder
import logging

# Configure logging BEFORE creating the app
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(levelname)s:\t%(name)s\t%(message)s',
    handlers=[
        logging.StreamHandler()  # Output to console
    ]
)
logging.getLogger("uvicorn").setLevel(logging.INFO)

logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Attempt lifecycle, scoring and integrity logging for timed assessments",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Shared background workers; threads are started in the startup hook
app.state.security_recorder = SecurityEventRecorder(
    SessionLocal,
    max_queue_size=settings.SECURITY_LOG_QUEUE_SIZE,
    enabled=settings.SECURITY_LOG_ENABLED,
)
app.state.expiry_watchdog = ExpiryWatchdog(
    SessionLocal,
    interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
    recorder=app.state.security_recorder,
    grace_seconds=settings.SUBMISSION_GRACE_SECONDS,
)

# Configure CORS - Always apply middleware
if settings.BACKEND_CORS_ORIGINS and settings.BACKEND_CORS_ORIGINS != "*":
    cors_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
else:
    cors_origins = ["*"]
logger.info(f"CORS enabled for origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain exception handlers
ERROR_STATUS = {
    AssessmentNotFound: status.HTTP_404_NOT_FOUND,
    AttemptNotFound: status.HTTP_404_NOT_FOUND,
    QuestionNotInAssessment: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AttemptAlreadyActive: status.HTTP_409_CONFLICT,
    AttemptLimitExceeded: status.HTTP_403_FORBIDDEN,
    AttemptNotActive: status.HTTP_409_CONFLICT,
}


@app.exception_handler(AssessmentEngineError)
async def assessment_engine_exception_handler(request: Request, exc: AssessmentEngineError):
    """
    Map engine errors to HTTP responses.

    Args:
        request: Request object
        exc: Engine exception

    Returns:
        JSON response with the error message and a machine-readable code
    """
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    error = ErrorResponse(
        detail=exc.message,
        code=type(exc).__name__,
        active_attempt_id=getattr(exc, "active_attempt_id", None),
    )
    return JSONResponse(status_code=status_code, content=error.model_dump(exclude_none=True))


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON response with error details
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Handle all unhandled exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON response with error message
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "message": str(exc)},
    )


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """
    Run on application startup.
    """
    logger.info(f"Starting {settings.PROJECT_NAME}")
    app.state.security_recorder.start()
    if settings.ENABLE_EXPIRY_WATCHDOG:
        app.state.expiry_watchdog.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Run on application shutdown.
    """
    app.state.expiry_watchdog.stop()
    app.state.security_recorder.stop()
    logger.info(f"Shutting down {settings.PROJECT_NAME}")


# Health check endpoint
@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint - Health check.

    Returns:
        Status message
    """
    return {
        "message": "Assessment Engine API",
        "status": "healthy",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "security_recorder": app.state.security_recorder.is_running,
        "expiry_watchdog": app.state.expiry_watchdog.is_running,
    }


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
