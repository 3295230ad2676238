"""
Async Request API Application

HTTP front door for bundle entitlements, VAT return submission, VAT
obligations and stored receipts. Slow work is answered inline within
x-wait-time-ms, otherwise with 202 and an x-request-id to poll.

Responsibility:
    - Build the app and mount /api/v1/bundle, /api/v1/hmrc/vat, /api/v1/hmrc/receipt
    - CORS, exposing x-request-id, Location and Retry-After to browsers
    - Render DomainException, validation and unexpected errors as
      {error, message, userMessage?, actionAdvice?}
    - Log every request and stamp x-request-id on every response
    - GET /health with Redis reachability (or "disabled" on the memory backend)

Architecture Notes:
    - Part of API Layer (Presentation)
    - Served by uvicorn: `uvicorn src.api.main:app`
    - Routers hand validated commands to IngestHandler; nothing here touches
      the request state store directly
    - The Redis pool is released in the lifespan shutdown hook
"""

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Import routers
from src.api.routers import bundles, receipts, vat_obligations, vat_returns

# Import shared schemas
from src.api.async_headers import REQUEST_ID_HEADER, is_valid_request_id
from src.api.schemas.common import ErrorResponse

# Import domain exceptions for global handling
from src.domain.shared.exceptions import DomainException, InvalidRequestError
from src.infrastructure.persistence.redis import close_connections
from src.infrastructure.persistence.redis import health_check as redis_health_check
from src.shared.config import get_config

# Configure logger
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class HealthCheckResponse(BaseModel):
    """
    Health check response model.

    Attributes:
        status: "ok", or "degraded" when Redis does not answer
        version: API version
        timestamp: Unix timestamp of health check
        redis: "ok", "unavailable" or "disabled" (memory backend)
    """

    status: str = "ok"
    version: str = API_VERSION
    timestamp: float
    redis: str


# ============================================================================
# MIDDLEWARE
# ============================================================================


async def request_logging_middleware(request: Request, call_next):
    """
    Request logging middleware.

    Logs all incoming requests with method, path, status code, duration and
    request id. Responses that did not set x-request-id (validation and auth
    errors) get the caller's header echoed, or a generated id.

    Logging Format:
        INFO: "Incoming request: POST /api/v1/bundle"
        INFO: "Request completed: POST /api/v1/bundle - 202 - 0.123s (request_id=...)"
    """
    logger.info(f"Incoming request: {request.method} {request.url.path}")

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    incoming = request.headers.get(REQUEST_ID_HEADER)
    fallback = incoming if is_valid_request_id(incoming) else str(uuid4())
    request_id = response.headers.setdefault(REQUEST_ID_HEADER, fallback)

    logger.info(
        f"Request completed: {request.method} {request.url.path} - "
        f"{response.status_code} - {duration:.3f}s (request_id={request_id})"
    )

    return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def domain_exception_handler(request: Request, exc: DomainException):
    """
    Global exception handler for domain layer exceptions.

    Catches all DomainException subclasses and renders
    {error, message, userMessage?, actionAdvice?} with the status the
    exception class declares.

    Mapping:
        - InvalidRequestError -> 400 (with "errors" list)
        - QualifierError -> 400 (unknown_qualifier / qualifier_mismatch)
        - AuthenticationError -> 401
        - BundleNotFoundError / ResourceNotFoundError -> 404
        - Other DomainException -> exc.status_code
    """
    error_response = ErrorResponse(
        error=exc.error_code,
        message=exc.message,
        user_message=exc.user_message,
        action_advice=exc.action_advice,
        errors=(exc.errors or None) if isinstance(exc, InvalidRequestError) else None,
    )

    logger.warning(
        f"Domain exception: {exc.__class__.__name__} - {exc.message} - "
        f"Request: {request.method} {request.url.path}"
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code, content=error_response.to_body(), headers=headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Render FastAPI request validation errors as 400 in the common error shape.
    """
    errors = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    error_response = ErrorResponse(
        error="invalid_request", message="Invalid request", errors=errors
    )
    logger.warning(
        f"Request validation failed: {errors} - Request: {request.method} {request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=error_response.to_body()
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Render anything that is not a DomainException as 500.

    On the ingest path this is a Redis or broker outage; by then a record
    whose enqueue failed has already been deleted. The stack trace is logged.
    """
    error_response = ErrorResponse(
        error="internal_server_error",
        message="An unexpected error occurred",
    )

    logger.error(
        f"Unexpected error: {exc.__class__.__name__} - {str(exc)} - "
        f"Request: {request.method} {request.url.path}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.to_body(),
    )


# ============================================================================
# APP FACTORY
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the Redis connection pool on shutdown."""
    yield
    close_connections()


def create_app() -> FastAPI:
    """
    Build the VAT Submit API.

    Each call returns a fresh app; tests use this together with
    service_factory.reset_services() for isolated in-memory state.

    Returns:
        FastAPI app with CORS, request id middleware, error handlers,
        the four /api/v1 routers and GET /health
    """
    app = FastAPI(
        title="VAT Submit API",
        version=API_VERSION,
        description=(
            "Bundle entitlements and VAT return submission behind an async "
            "request contract: synchronous answers within x-wait-time-ms, "
            "202 + x-request-id polling beyond it."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add CORS middleware (allow all origins for development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Production: restrict to specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Location", "Retry-After"],
    )

    # Add request logging middleware
    app.middleware("http")(request_logging_middleware)

    # Register global exception handlers
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Register routers with /api/v1 prefix
    app.include_router(bundles.router, prefix="/api/v1")
    app.include_router(vat_returns.router, prefix="/api/v1")
    app.include_router(vat_obligations.router, prefix="/api/v1")
    app.include_router(receipts.router, prefix="/api/v1")

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        status_code=status.HTTP_200_OK,
        summary="Health check endpoint",
        description="Health check for monitoring and load balancers",
        tags=["health"],
    )
    def health_check() -> HealthCheckResponse:
        """
        Health check endpoint.

        Examples:
            >>> curl http://localhost:8000/health
            {"status": "ok", "version": "0.1.0", "timestamp": 1704976800.1, "redis": "ok"}
        """
        if get_config().state_store_backend == "memory":
            redis_status = "disabled"
        else:
            redis_status = "ok" if redis_health_check() else "unavailable"

        return HealthCheckResponse(
            status="ok" if redis_status != "unavailable" else "degraded",
            version=API_VERSION,
            timestamp=time.time(),
            redis=redis_status,
        )

    logger.info("FastAPI application created successfully")
    logger.info(
        "Registered routers: /api/v1/bundle, /api/v1/hmrc/vat/return, "
        "/api/v1/hmrc/vat/obligation, /api/v1/hmrc/receipt"
    )
    logger.info("Health check available at: GET /health")

    return app


# ============================================================================
# APP INSTANCE (for uvicorn)
# ============================================================================

app = create_app()
