import logging
from contextlib import asynccontextmanager
from typing import Optional

from bson.errors import InvalidId
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from product_api import __version__
from product_api.api import health, products
from product_api.config import Settings, get_settings
from product_api.database import Database, DatabaseUnavailableError
from product_api.middleware import CorrelationIDMiddleware, UnhandledErrorMiddleware, internal_error_response
from product_api.schemas.product import ErrorEnvelope
from product_api.utils.logging import setup_logging

logger = logging.getLogger(__name__)

ENDPOINTS = [
    "GET /api/health - Health check",
    "GET /api/health/ready - Readiness check",
    "GET /api/product/{identifier} - Get product by barcode/serial",
    "POST /api/product - Add new product",
    "GET /api/products - Get all products with pagination",
    "PUT /api/product/{id} - Update product",
    "DELETE /api/product/{id} - Delete product",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("Starting up application...")

    # A failed connection keeps the app up; product endpoints answer 503 until restart
    if database.connect() and settings.SEED_SAMPLE_DATA:
        try:
            database.seed_if_empty()
        except PyMongoError as e:
            logger.error(f"Seeding sample data failed: {e}")

    logger.info(f"API endpoints: {'; '.join(ENDPOINTS)}")

    yield

    logger.info("Shutting down application...")
    database.close()


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    envelope = ErrorEnvelope(message=message, error=error)
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request: " + "; ".join(problems),
        error="VALIDATION_ERROR"
    )


async def database_unavailable_handler(request: Request, exc: DatabaseUnavailableError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} rejected: {exc}")
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Service unavailable",
        error="DATABASE_UNAVAILABLE"
    )


async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # The driver message stays in the log; clients only get the opaque code and correlation ID
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return internal_error_response()


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration, defaults to environment-driven settings
        database: Storage gateway, defaults to one built from settings
    """
    settings = settings or get_settings()
    setup_logging(settings.APP_NAME, settings.LOG_LEVEL, settings.LOG_JSON)

    app = FastAPI(
        title="Product API",
        description="""
    CRUD service for product records identified by barcode or serial number.

    - **Lookup** by barcode or serial
    - **Create** with uniqueness check on barcode and serial
    - **List** with pagination and case-insensitive search
    - **Update** and **Delete** by database identifier

    Every response uses the envelope `{success, message?, data?, pagination?, error?}`.
    """,
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)

    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DatabaseUnavailableError, database_unavailable_handler)
    app.add_exception_handler(InvalidId, server_error_handler)
    app.add_exception_handler(PyMongoError, server_error_handler)

    app.include_router(health.router, prefix="/api")
    app.include_router(products.router, prefix="/api")

    @app.get("/", tags=["Root"])
    def root():
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
            "endpoints": ENDPOINTS,
        }

    return app


app = create_app()


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run("product_api.main:app", host=settings.HOST, port=settings.PORT)
