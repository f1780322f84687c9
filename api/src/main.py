"""VidTalk API - comment threads and votes for video content items."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.comments.ledger import VoteLedger
from src.comments.moderation import ModerationService
from src.comments.moderation_router import router as moderation_router
from src.comments.router import router as comments_router
from src.comments.service import CommentService
from src.comments.store import CommentStore
from src.config import Settings, get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import REQUEST_ID_HEADER, RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.health import router as health_router


if TYPE_CHECKING:
    from redis.asyncio import Redis


settings = get_settings()
configure_structlog(
    settings, log_dir=Path(settings.log_dir), file_output=settings.log_to_file
)

logger = get_logger(__name__)


def build_services(
    app: FastAPI, session, redis: "Redis | None", settings: Settings
) -> None:
    """Wire the vote ledger, comment store and services onto ``app.state``."""
    ledger = VoteLedger(
        session=session,
        keyspace=settings.cassandra_keyspace,
        max_attempts=settings.vote_cas_max_attempts,
    )
    store = CommentStore(
        session=session,
        keyspace=settings.cassandra_keyspace,
        ledger=ledger,
        redis=redis,
        page_size=settings.comment_page_size,
        reply_limit=settings.comment_reply_limit,
        profile_cache_ttl=settings.profile_cache_ttl_seconds,
    )
    app.state.comment_service = CommentService(
        store=store, ledger=ledger, max_length=settings.comment_max_length
    )
    app.state.moderation_service = ModerationService(
        store=store,
        page_size=settings.moderation_page_size,
        lookback_months=settings.moderation_lookback_months,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect Redis (optional) and Cassandra, then wire the services.

    Without Cassandra the app still starts: comment routes answer 503 and
    the readiness probe reports ``degraded``.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        version=settings.app_version,
        environment=settings.environment,
    )

    redis_client = None
    try:
        redis_client = await init_redis()
    except Exception as e:
        logger.warning("profile_cache_disabled", error=str(e))

    try:
        session = await init_async_cassandra()
        build_services(app, session, redis_client, settings)
        logger.info(
            "comment_services_ready",
            keyspace=settings.cassandra_keyspace,
            profile_cache=redis_client is not None,
        )
    except Exception as e:
        logger.error("comment_services_unavailable", error=str(e))

    yield

    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_response(
    request: Request, status_code: int, message: str, **extra
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Errors leave as ``{"error", "message", "status_code", "request_id"}``.

    Messages are user-readable; stack traces and backend errors stay in logs.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
        )
        # 503 details are written for users ("Failed to load comments")
        shown = (
            exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        )
        response = _error_response(
            request,
            exc.status_code,
            str(exc.detail) if shown else "Internal server error",
        )
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(loc) for loc in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so Starlette never renders tracebacks into responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Comment threads, replies and votes for content items",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=settings.cors_max_age,
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(moderation_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {"message": "VidTalk API", "version": settings.app_version}

    return app


app = create_app()
