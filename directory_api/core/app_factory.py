"""
Application Factory Pattern

Creates FastAPI app instances with configurable settings for different environments.
Tests pass their own DatabaseGateway so every request runs against an isolated engine.
"""
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from directory_api.core.config import get_settings
from directory_api.core.exceptions import AppError, classify_integrity_error, error_body
from directory_api.core.logging import configure_logging
from directory_api.db.database import DatabaseGateway

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    401: "AUTH_REQUIRED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


class AppConfig:
    """Configuration for FastAPI application."""

    def __init__(
        self,
        environment: str = None,
        title: str = None,
        description: str = "Business directory with customer inquiries and analytics",
        version: str = None,
        enable_docs: bool = None,
        uploads_dir: str = None
    ):
        settings = get_settings()

        # Environment detection
        self.environment = (environment or settings.environment).lower()

        # Basic app settings
        self.title = title or settings.app_name
        self.description = description
        self.version = version or settings.app_version

        # API documentation
        self.enable_docs = enable_docs if enable_docs is not None else (self.environment != "production")
        self.docs_url = "/docs" if self.enable_docs else None
        self.redoc_url = "/redoc" if self.enable_docs else None

        self.uploads_dir = uploads_dir or settings.uploads_dir

    @property
    def include_stack(self) -> bool:
        """Stack traces appear in error bodies only in development"""
        return self.environment == "development"


def setup_routers(app: FastAPI) -> tuple:
    """Setup API routers."""
    loaded_routers = []
    failed_routers = []

    from directory_api.api._registry import ROUTERS
    logger.info("Loading {} routers from registry".format(len(ROUTERS)))

    for router in ROUTERS:
        router_name = getattr(router, 'prefix', 'unknown').replace('/api/v1/', '') or 'root'
        try:
            app.include_router(router)
            loaded_routers.append(router_name)
            logger.info("Router '{}' loaded successfully".format(router_name))
        except Exception as e:
            failed_routers.append((router_name, str(e)))
            logger.error("Router '{}' failed: {} - {}".format(router_name, type(e).__name__, e))

    return loaded_routers, failed_routers


def setup_static_files(app: FastAPI, config: AppConfig) -> None:
    """Serve uploaded images from the uploads directory."""
    uploads_dir = Path(config.uploads_dir)
    uploads_dir.mkdir(parents=True, exist_ok=True)

    app.mount("/uploads", StaticFiles(directory=str(uploads_dir)), name="uploads")
    logger.info("Static file serving configured for {}".format(uploads_dir))


def _validation_details(exc: RequestValidationError) -> List[dict]:
    details = []
    for error in exc.errors():
        # Drop the leading "body"/"query"/"path" segment
        location = [str(part) for part in error.get("loc", ())[1:]]
        details.append({
            "field": ".".join(location),
            "message": error.get("msg", "Invalid value"),
        })
    return details


def setup_exception_handlers(app: FastAPI, config: AppConfig) -> None:
    """Map every failure onto the {success: false, error: {...}} envelope."""

    def respond(status_code: int, code: str, message: str, details=None, exc=None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_body(code, message, details, exc, include_stack=config.include_stack)
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}".format(request.method, request.url.path, exc.message))
        else:
            logger.info("{} {} rejected with {}: {}".format(
                request.method, request.url.path, exc.code, exc.message
            ))
        return respond(exc.status_code, exc.code, exc.message, exc.details, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return respond(400, "VALIDATION_ERROR", "Validation failed", _validation_details(exc), exc)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        mapped = classify_integrity_error(exc)
        logger.warning("{} {} hit a constraint: {}".format(request.method, request.url.path, exc.orig))
        return respond(mapped.status_code, mapped.code, mapped.message, exc=exc)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on {} {}: {}".format(request.method, request.url.path, exc), exc_info=True)
        return respond(500, "DATABASE_ERROR", "A database error occurred", exc=exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return respond(exc.status_code, code, str(exc.detail), exc=exc)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on {} {}: {}".format(request.method, request.url.path, exc), exc_info=True)
        return respond(500, "INTERNAL_ERROR", "Something went wrong. Please try again later.", exc=exc)


def setup_health_endpoints(app: FastAPI, config: AppConfig, loaded_routers: List[str], failed_routers: List[tuple]) -> None:
    """Setup health check endpoints."""

    @app.get("/")
    async def root():
        """Root endpoint for service status."""
        return {
            "name": config.title,
            "version": config.version,
            "status": "operational",
            "environment": config.environment,
            "health_check": "/health",
            "routes_loaded": len(loaded_routers),
        }

    @app.head("/")
    async def root_head():
        """HEAD endpoint for health checks."""
        return {}

    @app.get("/health")
    async def health_check(request: Request):
        """Service and database health."""
        database = "healthy"
        db = request.app.state.db.session()
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Health check database query failed: {}".format(e))
            database = "unavailable"
        finally:
            db.close()

        healthy = database == "healthy" and not failed_routers
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "version": config.version,
                "environment": config.environment,
                "python_version": "{}.{}.{}".format(
                    sys.version_info.major, sys.version_info.minor, sys.version_info.micro
                ),
                "database": database,
                "routers": loaded_routers,
                "failed_routers": ["{}: {}".format(name, error) for name, error in failed_routers],
            }
        )


def create_app(config: Optional[AppConfig] = None, gateway: Optional[DatabaseGateway] = None) -> FastAPI:
    """
    Create FastAPI application with factory pattern.

    Args:
        config: Optional configuration object
        gateway: Database gateway; built from settings when omitted

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = AppConfig()

    # Setup logging first
    configure_logging(config.environment, level=get_settings().log_level)

    logger.info("Creating FastAPI application")
    logger.info("Environment: {}".format(config.environment))

    if gateway is None:
        gateway = DatabaseGateway.from_settings(get_settings())
    gateway.create_all()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.db.dispose()
        logger.info("Database connections closed")

    app = FastAPI(
        title=config.title,
        description=config.description,
        version=config.version,
        docs_url=config.docs_url,
        redoc_url=config.redoc_url,
        lifespan=lifespan
    )
    app.state.db = gateway
    app.state.uploads_dir = config.uploads_dir

    loaded_routers, failed_routers = setup_routers(app)
    setup_static_files(app, config)
    setup_exception_handlers(app, config)
    setup_health_endpoints(app, config, loaded_routers, failed_routers)

    # Log startup summary
    logger.info("=" * 50)
    logger.info("FastAPI application created successfully")
    logger.info("Loaded {} routers successfully".format(len(loaded_routers)))
    logger.info("Failed to load {} routers".format(len(failed_routers)))
    logger.info("Total routes: {}".format(len(app.routes)))
    logger.info("=" * 50)

    return app


def create_test_app(gateway: DatabaseGateway, uploads_dir: str = None) -> FastAPI:
    """Create app configured for testing."""
    config = AppConfig(environment="test", enable_docs=False, uploads_dir=uploads_dir)
    return create_app(config, gateway=gateway)
