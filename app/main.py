"""FastAPI application entry point.

Composition root: the lifespan builds the dedup cache, the Telegram channel and
the dispatcher, and tears them down in reverse order on shutdown.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.telegram import router as telegram_router
from app.channels.base import ChannelProtocol
from app.config import Settings, get_settings
from app.core.dedup_cache import DedupCache
from app.core.dispatcher import Dispatcher
from app.logging_config import setup_logging

logger = logging.getLogger(__name__)

_PROCESS_STARTED = time.monotonic()


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group validation messages by public field name."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        field = ".".join(loc[1:]) or (loc[0] if loc else "request")
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return errors


def _build_channel(settings: Settings) -> ChannelProtocol:
    from app.channels.telegram import TelegramChannel

    return TelegramChannel(settings)


def create_app(settings: Settings | None = None, channel: ChannelProtocol | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to cached settings, resolved at startup)
        channel: Outbound channel (defaults to a Telegram channel built at startup)

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: build the core, start/stop the cache sweep."""
        app_settings = settings or get_settings()
        app.state.settings = app_settings

        active_channel = channel or _build_channel(app_settings)
        if app_settings.telegram_verify_on_startup:
            # Raises if the token is rejected - app must not start
            try:
                bot_name = await active_channel.verify()
            except Exception:
                await active_channel.close()
                raise
            logger.info("Telegram bot verified: @%s", bot_name)

        cache = DedupCache(
            retention_seconds=app_settings.dedup_retention_seconds,
            sweep_interval_seconds=app_settings.dedup_sweep_interval_seconds,
        )
        app.state.dedup_cache = cache
        app.state.dispatcher = Dispatcher(active_channel, cache)
        cache.start()

        logger.info("-------------------------------------------------------")
        logger.info("HTTP server is running on port %d", app_settings.port)
        logger.info("Base URL: %s", app_settings.base_url)
        logger.info("API endpoint example: %s/api/v1/telegram/sendMessage", app_settings.base_url)
        logger.info("Telegram Bot Token Loaded: %s", "YES" if app_settings.telegram_bot_token else "NO")
        logger.info("Log Level: %s", app_settings.log_level)
        logger.info("-------------------------------------------------------")

        try:
            yield
        finally:
            # Stop the sweep before the cache is dropped
            await cache.stop()
            await active_channel.close()
            logger.info("Telegram channel closed.")

    app = FastAPI(
        title="FamLogger",
        description="Telegram relay with recent-message duplicate detection",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            target = request.url.path
            if request.url.query:
                target = f"{target}?{request.url.query}"
            logger.info("%s %s %d %.0fms", request.method, target, status_code, duration_ms)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown paths and unsupported methods on known paths are both "not found"
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"message": f"Route {request.method} {request.url.path} not found."},
            )
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.error("Validation failed for %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Validation failed", "errors": _validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Error during request %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        app_settings = getattr(request.app.state, "settings", None)
        show_details = app_settings is not None and app_settings.is_development
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": "Internal Server Error",
                "errorDetails": str(exc) if show_details else None,
            },
        )

    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check with process uptime and dedup cache size."""
        return {
            "status": "UP",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - _PROCESS_STARTED,
            "cacheSize": request.app.state.dedup_cache.size(),
        }

    app.include_router(telegram_router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.critical("FATAL: invalid configuration (is TELEGRAM_BOT_TOKEN set?): %s", e)
        sys.exit(1)

    setup_logging(settings.log_level)
    logger.info("Starting %s server...", settings.app_name)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
    )


if __name__ == "__main__":
    run()
