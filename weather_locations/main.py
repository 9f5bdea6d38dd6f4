import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.engine import make_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from weather_locations.api import locations
from weather_locations.auth import TokenVerifier
from weather_locations.db.connection import (
    DatabaseEngines,
    create_engines,
    create_session_factory,
    sanitize_database_url,
)
from weather_locations.db.models import Base
from weather_locations.db.repositories.location_store import StoreGateway
from weather_locations.errors import (
    AuthError,
    FavoriteExistsError,
    PayloadValidationError,
    StorageError,
)
from weather_locations.messaging import RedisProvider, RedisPublisher
from weather_locations.schemas.error import ErrorType, ValidationErrorDetail
from weather_locations.services.favorites import (
    EnrichmentTrigger,
    FavoritesBroadcaster,
    FavoritesOrderingEngine,
    SideEffectDispatcher,
)
from weather_locations.services.favorites_service import FavoriteLocationsService
from weather_locations.settings import AppSettings, get_settings
from weather_locations.utils.cors import apply_cors_headers, cors_headers
from weather_locations.utils.error_responses import (
    build_error_response,
    build_validation_error_response,
    error_json_response,
)
from weather_locations.utils.request_context import (
    get_request_id,
    get_user_id,
    set_request_id,
)
from weather_locations.warmup import warmup_all

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 5.0
STORAGE_RETRY_AFTER_SECONDS = 3

logger = logging.getLogger(__name__)


def validate_environment(settings: AppSettings) -> None:
    """Log warnings for optional configuration that was left unset."""

    warnings = settings.optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning("  • %s", warning)
        logger.warning("=" * 60)


def _ensure_sqlite_directory(url: str) -> None:
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


async def _prepare_schema(settings: AppSettings, engines: DatabaseEngines) -> None:
    if settings.database_type != "sqlite":
        logger.info("PostgreSQL mode - schema is managed by Alembic migrations")
        logger.info("Ensure the revisions in weather_locations/db/migrations are applied")
        return

    logger.info("SQLite mode - creating tables if they do not exist")
    _ensure_sqlite_directory(settings.resolved_database_url)
    async with engines.primary.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration, warm connections and release them on shutdown."""

    settings: AppSettings = app.state.settings
    engines: DatabaseEngines = app.state.engines
    validate_environment(settings)

    logger.info("=" * 60)
    logger.info("Weather Locations API - Database Preflight Check")
    logger.info("=" * 60)
    logger.info("Database Type: %s", settings.database_type.upper())
    logger.info("Database URL: %s", sanitize_database_url(settings.resolved_database_url))
    replica_url = settings.resolved_replica_url
    if replica_url is not None:
        logger.info("Replica URL: %s", sanitize_database_url(replica_url))

    await _prepare_schema(settings, engines)
    await warmup_all(engines, app.state.redis_provider)

    yield

    logger.info("Shutting down Weather Locations API")
    await app.state.dispatcher.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    await app.state.redis_provider.close()
    await engines.dispose()


def _validation_details(errors: list[dict]) -> list[ValidationErrorDetail]:
    return [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in errors
    ]


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_exception_handler(request: Request, exc: AuthError):
        """Reject the request; expired sessions are reported separately."""

        logger.info(
            "Authentication failed for request %s to %s: %s",
            get_request_id(),
            request.url.path,
            exc.reason,
        )
        if exc.expired:
            message, detail = "Token Expired", "expired"
        else:
            message, detail = "Unauthorized: Invalid Token", str(exc)

        error_response = build_error_response(
            error_type=ErrorType.AUTHENTICATION_ERROR,
            message=message,
            detail=detail,
            status_code=status.HTTP_401_UNAUTHORIZED,
            path=str(request.url.path),
        )
        return error_json_response(
            error_response, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle FastAPI request validation errors."""

        errors = _validation_details(exc.errors())
        logger.warning(
            "Validation error for request %s to %s: %s errors",
            get_request_id(),
            request.url.path,
            len(errors),
        )
        error_response = build_validation_error_response(
            message="Request validation failed",
            detail=f"{len(errors)} validation error(s)",
            status_code=status.HTTP_400_BAD_REQUEST,
            path=str(request.url.path),
            errors=errors,
        )
        return error_json_response(error_response)

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        """Handle Pydantic validation errors."""

        errors = _validation_details(exc.errors())
        logger.warning(
            "Pydantic validation error for request %s to %s: %s errors",
            get_request_id(),
            request.url.path,
            len(errors),
        )
        error_response = build_validation_error_response(
            message="Data validation failed",
            detail=f"{len(errors)} validation error(s)",
            status_code=status.HTTP_400_BAD_REQUEST,
            path=str(request.url.path),
            errors=errors,
        )
        return error_json_response(error_response)

    @app.exception_handler(PayloadValidationError)
    async def payload_exception_handler(
        request: Request, exc: PayloadValidationError
    ):
        logger.warning(
            "Rejected payload for request %s to %s: %s",
            get_request_id(),
            request.url.path,
            exc,
        )
        error_response = build_error_response(
            error_type=ErrorType.VALIDATION_ERROR,
            message="Invalid request payload",
            detail=str(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
            path=str(request.url.path),
        )
        return error_json_response(error_response)

    @app.exception_handler(FavoriteExistsError)
    async def favorite_exists_exception_handler(
        request: Request, exc: FavoriteExistsError
    ):
        error_response = build_error_response(
            error_type=ErrorType.CONFLICT,
            message="Location is already a favorite",
            detail=str(exc),
            status_code=status.HTTP_409_CONFLICT,
            path=str(request.url.path),
        )
        return error_json_response(error_response)

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        """Report store failures without leaking driver details."""

        logger.error(
            "Storage error for request %s (user %s) to %s: %s",
            get_request_id(),
            get_user_id() or "-",
            request.url.path,
            exc,
        )
        error_response = build_error_response(
            error_type=ErrorType.DATABASE_ERROR,
            message="Internal server error",
            detail="The operation could not be completed. Please try again.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=str(request.url.path),
            retry_after=STORAGE_RETRY_AFTER_SECONDS if exc.retryable else None,
        )
        return error_json_response(error_response)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown methods on known paths are reported like unknown paths.
        if exc.status_code in (
            status.HTTP_404_NOT_FOUND,
            status.HTTP_405_METHOD_NOT_ALLOWED,
        ):
            error_response = build_error_response(
                error_type=ErrorType.NOT_FOUND,
                message="Not Found",
                detail=f"No route for {request.method} {request.url.path}",
                status_code=status.HTTP_404_NOT_FOUND,
                path=str(request.url.path),
            )
        else:
            error_response = build_error_response(
                error_type=ErrorType.INTERNAL_ERROR,
                message=str(exc.detail),
                detail=None,
                status_code=exc.status_code,
                path=str(request.url.path),
            )
        return error_json_response(error_response, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions."""

        logger.exception(
            "Unhandled exception for request %s to %s: %s",
            get_request_id(),
            request.url.path,
            type(exc).__name__,
        )
        error_response = build_error_response(
            error_type=ErrorType.INTERNAL_ERROR,
            message="Internal server error",
            detail="An unexpected error occurred.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=str(request.url.path),
        )
        # Runs outside the HTTP middleware stack, so CORS is applied here.
        return error_json_response(
            error_response,
            headers=cors_headers(request.app.state.settings.allowed_origin),
        )


def create_app(
    settings: AppSettings | None = None,
    *,
    engines: DatabaseEngines | None = None,
    publisher: RedisPublisher | None = None,
) -> FastAPI:
    """Assemble the API and every component it depends on.

    ``engines`` and ``publisher`` may be supplied to reuse pre-built
    resources, e.g. an in-memory database or a Redis double.
    """

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level_numeric, format=LOG_FORMAT)

    engines = engines or create_engines(settings)
    gateway = StoreGateway(
        create_session_factory(engines.primary),
        create_session_factory(engines.replica),
        operation_timeout=settings.operation_timeout_seconds,
    )
    redis_provider = RedisProvider(settings.redis_url)
    publisher = publisher or RedisPublisher(redis_provider)
    dispatcher = SideEffectDispatcher()
    favorites_service = FavoriteLocationsService(
        engine=FavoritesOrderingEngine(
            gateway, max_add_attempts=settings.add_max_attempts
        ),
        dispatcher=dispatcher,
        broadcaster=FavoritesBroadcaster(
            publisher, channel_prefix=settings.favorites_channel_prefix
        ),
        enrichment=EnrichmentTrigger(
            publisher, queue_key=settings.enrichment_queue_key
        ),
    )

    app = FastAPI(
        title="Weather Locations API",
        version="0.1.0",
        description="Per-user ordered favorite locations for the weather app.",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.engines = engines
    app.state.redis_provider = redis_provider
    app.state.dispatcher = dispatcher
    app.state.token_verifier = TokenVerifier(
        settings.jwt_secret, settings.jwt_algorithm
    )
    app.state.favorites_service = favorites_service

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID to each request for tracking."""

        request_id = str(uuid.uuid4())
        set_request_id(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        """Answer preflights directly and attach CORS headers to every response."""

        if request.method == "OPTIONS":
            return Response(
                status_code=status.HTTP_204_NO_CONTENT,
                headers=cors_headers(settings.allowed_origin),
            )
        response = await call_next(request)
        return apply_cors_headers(response, settings.allowed_origin)

    _register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        """Simple health endpoint for readiness checks."""

        return {"status": "ok"}

    app.include_router(locations.router, tags=["locations"])
    return app


app = create_app()
