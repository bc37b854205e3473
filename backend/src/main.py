# pyright: reportMissingTypeStubs=false
"""
Maintenance Scheduling Backend API

A FastAPI application exposing the time-slot capacity and assignment
lifecycle engine of the maintenance platform.

Features:
- Slot capacity, gap search and multi-day allocation proposals
- Issue assignment with provider-wide double-booking protection
- Booking lifecycle (start, hold, resume, finish, approve, cancel)
- Time extension negotiation
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import assignments, availability, extensions
from core.constants import CORS_ORIGINS
from core.exceptions import (
    CapacityConflictError, InvalidRequestError, InvalidTransitionError, NotFoundError,
    PermissionDeniedError, ProofRequiredError, SchedulingError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🛠️ Maintenance Scheduling API starting...")


# HTTP status per domain error; subclasses not listed fall back to 400
ERROR_STATUS_CODES: Dict[Type[SchedulingError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    CapacityConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
    ProofRequiredError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidRequestError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Maintenance Scheduling Backend API")
    yield
    logger.info("🛑 Shutting down Maintenance Scheduling Backend API")


# Create FastAPI application
app = FastAPI(
    title="Maintenance Scheduling Backend",
    description="Time-slot capacity and assignment lifecycle engine for maintenance requests",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)



# Include API routers
app.include_router(
    availability.router,
    prefix="/api",
    tags=["availability"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    assignments.router,
    prefix="/api",
    tags=["assignments"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation error"},
    },
)
app.include_router(
    extensions.router,
    prefix="/api",
    tags=["extensions"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Maintenance Scheduling Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}



# Global exception handlers
@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Translate domain errors raised by the services into HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "type": exc.code, "details": exc.details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )
