import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from commentboard.config import Settings, settings as default_settings
from commentboard.database import Database
from commentboard.errors import DomainError
from commentboard.identity import RandomUserClient
from commentboard.middleware import (
    GENERIC_ERROR,
    BodySizeLimitMiddleware,
    ErrorFallbackMiddleware,
    InputTrimMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from commentboard.ratelimit import RateLimiter
from commentboard.routers import comments, users
from commentboard.schemas import HealthResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    # Startup
    if await state.database.ping():
        logger.info("Database connection established")
    await state.database.create_all()
    await state.rate_limiter.connect()
    logger.info("Environment: %s", state.settings.APP_ENV)
    logger.info("CORS allowed for: %s", state.settings.CORS_ORIGIN)
    yield
    # Shutdown
    await state.rate_limiter.disconnect()
    await state.identity_provider.aclose()
    await state.database.dispose()


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        message = exc.message
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
            if not settings.is_development:
                message = GENERIC_ERROR
        return JSONResponse({"error": message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = "Invalid request"
        return JSONResponse({"error": message}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            {"error": message},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    identity_provider: RandomUserClient | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Comment Board API",
        description="Users and comments behind a hardened request pipeline",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.identity_provider = identity_provider or RandomUserClient(settings.IDENTITY_API_URL)
    app.state.rate_limiter = rate_limiter or RateLimiter(
        window_ms=settings.RATE_LIMIT_WINDOW_MS,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        redis_url=settings.REDIS_URL,
    )

    # Middleware (added innermost first; the last one added runs first)
    app.add_middleware(ErrorFallbackMiddleware, debug=settings.is_development)
    app.add_middleware(InputTrimMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )
    app.add_middleware(SecurityHeadersMiddleware)

    _register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="OK",
            timestamp=datetime.now(timezone.utc),
            environment=settings.APP_ENV,
        )

    # Routers: under /api, and at the root for older clients.
    for router in (users.router, comments.router):
        app.include_router(router, prefix="/api")
        app.include_router(router)

    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()
