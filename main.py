"""
Main application entry point for the Wellness Journal API.

This module initializes the FastAPI application, configures CORS,
registers the error handlers that produce the ``{success, message}``
envelope, and includes the journal, contacts and health routers.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- wellness.database: Engine, sessions and table creation
- wellness.journal: Journal entry router
- wellness.contacts: Contacts router
- wellness.health: Health check router
- wellness.core: Application settings
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from wellness import contacts, health, journal
from wellness.core import get_settings
from wellness.database import get_sessionmaker, init_db
from wellness.errors import UnavailableError, ValidationError, WellnessError
from wellness.log import get_logger, setup_logging
from wellness.schemas import describe_errors
from wellness.seed import seed_sample_data

settings = get_settings()
logger = get_logger("wellness.main")

# Initialize FastAPI application
app = FastAPI(title="Wellness Journal API")

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(
    status_code: int, message: str, exc: Exception | None = None, **extra
) -> JSONResponse:
    """
    Build the shared error envelope.

    The exception text is only exposed in development.
    """
    content = {"success": False, "message": message, **extra}
    if exc is not None and get_settings().is_development:
        content["error"] = str(exc)
    return JSONResponse(status_code=status_code, content=content)


def available_endpoints() -> list[str]:
    """List ``METHOD /path`` for every API route."""
    endpoints = []
    for route in app.routes:
        if isinstance(route, APIRoute):
            for method in sorted(route.methods):
                endpoints.append(f"{method} {route.path}")
    return endpoints


@app.exception_handler(WellnessError)
async def wellness_error_handler(request: Request, exc: WellnessError):
    """Map domain errors to their status code."""
    extra = {}
    if isinstance(exc, ValidationError):
        if exc.field:
            extra["field"] = exc.field
        if exc.details:
            extra["details"] = exc.details
    if isinstance(exc, UnavailableError):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc.__cause__ or exc, **extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report body validation failures as 400 naming the offending field."""
    field, details = describe_errors(exc.errors())
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        field=field,
        details=details,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Wrap routing errors in the envelope; unknown routes list the API."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(
            status.HTTP_404_NOT_FOUND,
            "Endpoint not found",
            available_endpoints=available_endpoints(),
        )
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc
    )


@app.on_event("startup")
def startup_event():
    """
    FastAPI startup event handler.

    Configures logging, creates missing tables and, when enabled,
    seeds sample data for the sample user.
    """
    setup_logging(settings.LOG_LEVEL)
    init_db()
    if settings.SEED_SAMPLE_DATA:
        db = get_sessionmaker()()
        try:
            seed_sample_data(db, user_id=settings.SAMPLE_USER_ID)
        finally:
            db.close()
    logger.info("Wellness Journal API started")


# Include routers for application areas
app.include_router(journal.router)
app.include_router(contacts.router)
app.include_router(health.router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"success": True, "message": "Wellness Journal API. Visit /docs for Swagger UI"}
