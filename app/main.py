from typing import Dict, List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from app.core.config import settings
from app.api.router import api_router
from app.db.async_session import startup_async_database, shutdown_async_database
from app.schemas.base import ErrorEnvelope
from app.services.async_error_handler import AsyncErrorHandler, ChatServiceError
from app.utils.logger import api_logger

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    redirect_slashes=False,  # Prevent automatic trailing slash redirects that cause HTTPS->HTTP issues
)

# Custom OpenAPI schema with explicit security scheme
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=settings.PROJECT_DESCRIPTION,
        routes=app.routes,
    )

    # Bearer tokens are minted by the identity service
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


def error_response(
    status_code: int, message: str, errors: Dict[str, List[str]] = None, headers: Dict[str, str] = None
) -> JSONResponse:
    body = ErrorEnvelope(message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors: Dict[str, List[str]] = {}
    for error in jsonable_encoder(exc.errors()):
        # Drop the "body"/"query"/"path" location prefix
        location = [str(part) for part in error.get("loc", ())[1:]] or ["request"]
        errors.setdefault(".".join(location), []).append(error.get("msg", "Invalid value"))
    return error_response(422, "Validation failed", errors)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    converted = AsyncErrorHandler.handle_error(exc, f"{request.method} {request.url.path}")
    return error_response(converted.status_code, converted.message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(500, "An unexpected error occurred")


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    try:
        logger.info(f"Starting up {settings.PROJECT_NAME}...")

        # Initialize async database connections
        await startup_async_database()
        logger.info("Async database initialized successfully")

        api_logger.banner(f"{settings.PROJECT_NAME} ready", "STARTUP")

    except Exception as e:
        logger.error(f"Failed to start up application: {e}")
        raise

@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on application shutdown."""
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")
    await shutdown_async_database()
    logger.info(f"{settings.PROJECT_NAME} shutdown completed successfully")

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": f"Welcome to {settings.PROJECT_NAME}"}
