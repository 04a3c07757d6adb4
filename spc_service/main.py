"""FastAPI application entry point for the SPC Computation Service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spc_service import __version__
from spc_service.config import settings
from spc_service.routers import control_charts, health

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting SPC Computation Service (%s)", settings.python_env)
    yield
    logger.info("Shutting down SPC Computation Service")


app = FastAPI(
    title="SPC Computation Service",
    description="Statistical process control computation for quality-improvement dashboards",
    version=__version__,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _serialize_validation_errors(errors: list) -> list:
    """Convert validation errors to JSON-serializable format."""
    serialized = []
    for error in errors:
        serialized_error = {
            "type": error.get("type", "unknown"),
            "loc": error.get("loc", []),
            "msg": error.get("msg", "Validation error"),
        }
        # Only include 'input' if it's a simple type
        if "input" in error and isinstance(error["input"], (str, int, float, bool, type(None), list, dict)):
            serialized_error["input"] = error["input"]
        serialized.append(serialized_error)
    return serialized


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors."""
    logger.warning(f"Request validation error: {exc.errors()}")
    serialized_errors = _serialize_validation_errors(exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "status": "error",
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid input data. Check the request format.",
                "details": serialized_errors,
            },
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors with a generic message.

    Note: HTTPException is handled by FastAPI's default handler and won't reach here.
    """
    # Skip HTTPException - let FastAPI handle it
    if isinstance(exc, HTTPException):
        raise exc

    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "Internal server error. Please try again.",
            },
        },
    )


# Include routers
app.include_router(health.router)
app.include_router(control_charts.router, prefix="/api/control-charts", tags=["Control Charts"])
