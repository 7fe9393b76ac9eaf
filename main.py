"""
FastAPI application entrypoint for the LLM gateway.

Served with `uvicorn main:create_app --factory`; `python main.py` starts a
reloading dev server on $PORT.

Architecture:
- One provider adapter per process, wrapped once in the shared decorators
  (cache, retry) and per request in the caller decorators (rate limit,
  metrics, logging)
- Tool-calling agent over weather and document search tools
- Prometheus metrics on /metrics
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from config import Settings, get_settings
from models.decorators import (
    InMemoryRateLimiter,
    InMemoryResponseCache,
    RedisRateLimiter,
    RedisResponseCache,
    get_default_metrics,
)
from models.errors import (
    ConfigurationError,
    GatewayError,
    MaxIterationsExceededError,
    ProviderError,
    RateLimitExceededError,
    UnsupportedOperationError,
)
from models.factory import LLMFactory, build_core_llm
from tools import HttpWeatherService, create_tool_executor
from utils.logging import RequestIdMiddleware, configure_logging

# Configure logging at import time
configure_logging()

logger = logging.getLogger(__name__)


def error_status(error: GatewayError) -> int:
    """HTTP status for a gateway error."""
    if isinstance(error, RateLimitExceededError):
        return 429
    if isinstance(error, ProviderError):
        return 503 if error.retryable else 502
    if isinstance(error, UnsupportedOperationError):
        return 400
    if isinstance(error, MaxIterationsExceededError):
        return 422
    # ConfigurationError, ToolError and anything unexpected
    return 500


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Serialize gateway errors as JSON error bodies."""
    status_code = error_status(exc)
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(int(exc.retry_after_seconds))}

    log = logger.warning if status_code < 500 or status_code == 503 else logger.error
    log(
        f"Request failed: {exc.kind}",
        extra={"path": request.url.path, "status_code": status_code, "error": exc.message},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Invalid conversations and options rejected by the model layer."""
    return JSONResponse(
        status_code=422,
        content={"error": "invalid_request", "message": str(exc)},
    )


@dataclass
class Resources:
    """Clients opened during startup that must be closed on shutdown."""

    redis_client: redis.Redis | None = None
    http_client: httpx.AsyncClient | None = None
    db_ready: bool = False

    async def release(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.db_ready:
            from db import close_db

            await close_db()
        if self.redis_client is not None:
            await self.redis_client.aclose()


async def build_components(app: FastAPI, settings: Settings, resources: Resources) -> None:
    """Populate app.state, recording every opened client in ``resources``."""
    if "redis" in (settings.cache.backend, settings.rate_limit.backend):
        resources.redis_client = redis.from_url(settings.redis_url)

    cache = (
        RedisResponseCache(resources.redis_client)
        if settings.cache.backend == "redis"
        else InMemoryResponseCache()
    )
    app.state.rate_limiter = (
        RedisRateLimiter(resources.redis_client)
        if settings.rate_limit.backend == "redis"
        else InMemoryRateLimiter()
    )
    app.state.metrics = get_default_metrics()

    # Missing keys or unknown providers are fatal at startup
    adapter = LLMFactory(settings).create_default()
    app.state.core_llm = build_core_llm(settings, adapter, cache)
    logger.info(
        "LLM provider initialized",
        extra={"provider": adapter.provider_name, "model": adapter.model},
    )

    resources.http_client = httpx.AsyncClient(timeout=settings.llm_timeout_seconds)
    weather_service = HttpWeatherService(resources.http_client, settings.weather_api_base_url)

    search_repository = None
    if settings.enable_document_search:
        from db import SqlSearchRepository, create_schema, get_session_factory, init_db

        init_db(settings)
        resources.db_ready = True
        await create_schema()
        search_repository = SqlSearchRepository(get_session_factory())

    app.state.tool_executor = create_tool_executor(weather_service, search_repository)
    logger.info(
        "Tools registered",
        extra={"tools": [tool.name for tool in app.state.tool_executor.get_all_tools()]},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the shared gateway components on startup and release them on shutdown.

    Populates app.state with core_llm, rate_limiter, metrics and tool_executor.
    Any startup failure (missing key, unreachable database) aborts the boot
    after closing whatever was already opened.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Starting LLM gateway",
        extra={
            "env": settings.app_env,
            "provider": settings.provider,
            "cache_backend": settings.cache.backend,
            "rate_limit_backend": settings.rate_limit.backend,
        },
    )

    resources = Resources()
    try:
        try:
            await build_components(app, settings, resources)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to initialize application: {e}", exc_info=True)
            raise

        yield
    finally:
        logger.info("Shutting down LLM gateway")
        await resources.release()


def create_app(settings: Settings | None = None, use_lifespan: bool = True) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Application settings (if None, uses get_settings())
        use_lifespan: Run the startup wiring (tests set app.state themselves)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="LLM Gateway",
        description="Provider-neutral LLM gateway with caching, retries, rate limiting and tools",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs" if settings.is_dev else None,  # Disable in production
        redoc_url="/redoc" if settings.is_dev else None,
    )

    # Read by the lifespan and by route dependencies
    app.state.settings = settings

    # --- Middleware ---

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestIdMiddleware)

    # --- Errors ---

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    # --- Routes ---

    from api.chat import router as chat_router

    app.include_router(chat_router, prefix="/api", tags=["Chat"])

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app(registry=get_default_metrics().registry))

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "env": settings.app_env,
            "provider": settings.provider,
        }

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "LLM Gateway",
            "version": "0.1.0",
            "docs": "/docs" if settings.is_dev else "disabled",
        }

    logger.info(
        "FastAPI application created",
        extra={
            "env": settings.app_env,
            "routes_count": len(app.routes),
        },
    )

    return app


if __name__ == "__main__":
    import os

    import uvicorn

    settings = get_settings()
    port = int(os.getenv("PORT", "8000"))

    logger.info(f"Starting development server on port {port}")

    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=settings.is_dev,  # Auto-reload in development
        log_level=settings.log_level.lower(),
    )
