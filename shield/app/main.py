import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shield.app.api.admin import router as admin_router
from shield.app.core.config import settings
from shield.app.core.logging import get_logger, setup_logging
from shield.app.core.store import get_counter_store
from shield.app.db.async_session import check_database, close_async_engine, init_async_db
from shield.app.exceptions import AuthenticationError, RateLimitExceededError, ShieldException
from shield.app.middleware.request_id import RequestIdMiddleware
from shield.app.middleware.security import SecurityMiddleware, rate_limit_headers
from shield.app.services.event_recorder import get_event_recorder


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create tables and the counter store on startup; flush events on shutdown."""
        await init_async_db()
        store = get_counter_store()
        logger.info(
            "Application startup complete",
            extra={"store": type(store).__name__, "debug_mode": settings.debug},
        )

        yield

        # Pending security events are written before the database goes away
        await get_event_recorder().drain()
        await store.close()
        await close_async_engine()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Job Board Shield",
        description="Request defense layer: rate limiting, threat detection and security event analytics",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware order: last added = first executed
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with database and counter store status."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        try:
            await check_database()
            health_status["components"]["database"] = {"status": "ok"}
        except Exception as e:
            health_status["status"] = "degraded"
            health_status["components"]["database"] = {"status": "error", "error": str(e)[:100]}

        store = get_counter_store()
        store_type = "redis" if settings.redis_enabled else "memory"
        try:
            await store.ping()
            health_status["components"]["store"] = {"status": "ok", "type": store_type}
        except Exception as e:
            # The limiter fails open, so a lost store degrades protection, not service
            health_status["status"] = "degraded"
            health_status["components"]["store"] = {
                "status": "error",
                "type": store_type,
                "error": str(e)[:100],
            }

        return health_status

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        headers = rate_limit_headers(exc.info)
        headers["Retry-After"] = str(exc.info.retry_after_seconds(int(time.time() * 1000)))
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "message": exc.message},
            headers=headers,
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        """Handle AuthenticationError and return HTTP 401 response."""
        return JSONResponse(
            status_code=401,
            content={"error": "authentication_failed", "message": exc.detail},
        )

    @app.exception_handler(ShieldException)
    async def shield_error_handler(request: Request, exc: ShieldException) -> JSONResponse:
        """Translate the remaining shield exceptions to their status codes."""
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error(
                f"Security layer error: {exc.message}",
                extra={"request_id": request_id, "exception_type": type(exc).__name__},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "message": exc.message, "request_id": request_id},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; details are logged server-side.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
            },
        )

        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": str(exc),
                    "exception_type": type(exc).__name__,
                    "request_id": request_id,
                },
            )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "Internal server error",
                "request_id": request_id,
            },
        )

    return app


# Create the application instance
app = create_app()
