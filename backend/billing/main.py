"""
Main Entry Point - FastAPI Application
Project: Billing Backend

Sets up the FastAPI application: middleware, routers, exception handlers
and lifecycle.
"""

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from billing.core.config import settings
from billing.core.database import check_db, close_db, init_db
from billing.core.exceptions import AppException
from billing.schemas.common import ApiResponse, ErrorResponse

# ------------------------------------------------------------
# Logging configuration
# ------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, error_code: str, details=None) -> JSONResponse:
    """Serialize the error envelope."""
    body = ErrorResponse(error=error, error_code=error_code, details=details)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True, exclude_none=True)),
    )


# ------------------------------------------------------------
# Lifespan Handler
# ------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle.

    - Startup: check the database connection
    - Shutdown: dispose of the connection pool
    """
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.app_env)
    await init_db()
    logger.info("Application started")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Application stopped")


# ------------------------------------------------------------
# FastAPI Application
# ------------------------------------------------------------
app = FastAPI(
    title=settings.app_name,
    description="Invoicing backend - customers, products, invoices and payments",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# ------------------------------------------------------------
# CORS middleware
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handler for every AppException subclass.

    The status code and error code come from the exception class.
    """
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return error_response(exc.status_code, exc.detail, exc.error_code, exc.extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Malformed request payload or parameters: 400 with the field errors.
    """
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        "VALIDATION_ERROR",
        exc.errors(),
    )


@app.exception_handler(ValidationError)
async def pydantic_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """
    Filters built from query parameters failed cross-field validation.
    """
    logger.warning("Invalid filters on %s %s: %s", request.method, request.url.path, exc.errors())
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        "VALIDATION_ERROR",
        exc.errors(include_url=False),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Fallback for uncaught exceptions: logged with traceback, 500 without
    internal details.
    """
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        "INTERNAL_SERVER_ERROR",
    )


# ------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------
@app.get(
    "/health",
    name="Health Check",
    summary="Application and database status",
    tags=["System"],
)
async def health_check() -> JSONResponse:
    """
    Report the application status; 503 when the database is unreachable.
    """
    database_ok = await check_db()
    payload = {
        "status": "healthy" if database_ok else "unhealthy",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "version": settings.app_version,
        "environment": settings.app_env,
        "database": "connected" if database_ok else "disconnected",
    }
    body = ApiResponse(
        success=database_ok,
        data=payload,
        message="API is healthy" if database_ok else "API is unhealthy",
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=jsonable_encoder(body.model_dump(by_alias=True)),
    )


# ------------------------------------------------------------
# Router
# ------------------------------------------------------------
from billing.api.v1 import api_v1_router  # noqa: E402

app.include_router(api_v1_router)
