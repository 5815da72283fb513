"""
FastAPI application factory
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokenprism import __version__
from tokenprism.core.config import ConfigManager, TokenPrismConfig
from tokenprism.core.container import ServiceContainer, build_container
from tokenprism.core.exceptions import DataValidationError, ErrorCode, ProviderError, TokenPrismError
from tokenprism.core.logging import configure_logging, log_context
from tokenprism.web.models import ErrorResponse
from tokenprism.web.ratelimit import enforce_rate_limit
from tokenprism.web.routes import health_router, metrics_router, token_router, websocket_router
from tokenprism.web.utils import get_request_id


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the refresh loop on startup and release every service on shutdown."""
    container: ServiceContainer = app.state.container
    app.state.start_time = time.time()

    if app.state.run_refresh:
        await container.refresh_loop.start()

    yield

    await container.close()


def create_app(
    config: TokenPrismConfig | None = None,
    *,
    container: ServiceContainer | None = None,
    run_refresh: bool = True,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: configuration; loaded from file and environment when omitted
        container: pre-built services, mainly for tests
        run_refresh: start the periodic refresh loop with the app
    """
    if container is None:
        config = config or ConfigManager().get_config()
        configure_logging(config.logging.level, file_path=config.logging.file)
        container = build_container(config)

    app = FastAPI(
        title="tokenprism",
        description="Multi-source trending token aggregation with real-time fan-out",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.run_refresh = run_refresh

    _setup_middleware(app)
    _setup_routes(app)
    _setup_exception_handlers(app)

    return app


def _setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        with log_context(trace_id=get_request_id(request)):
            started = time.perf_counter()
            response = await call_next(request)
            logger.info(
                f"{request.method} {request.url.path}",
                query=dict(request.query_params),
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return response


def _setup_routes(app: FastAPI) -> None:
    app.include_router(token_router, prefix="/api/tokens", tags=["tokens"], dependencies=[Depends(enforce_rate_limit)])
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(websocket_router, tags=["stream"])


def _error(status_code: int, error: str, message: str, details: dict | None, request: Request) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        details=details,
        request_id=get_request_id(request) or str(uuid.uuid4()),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DataValidationError)
    async def validation_exception_handler(request: Request, exc: DataValidationError) -> JSONResponse:
        return _error(400, exc.__class__.__name__, exc.message, {"error_code": exc.error_code, **exc.details}, request)

    @app.exception_handler(ProviderError)
    async def provider_exception_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error("Upstream error reached the API", error=exc.message, path=request.url.path)
        return _error(502, exc.__class__.__name__, exc.message, {"error_code": exc.error_code}, request)

    @app.exception_handler(TokenPrismError)
    async def tokenprism_exception_handler(request: Request, exc: TokenPrismError) -> JSONResponse:
        return _error(400, exc.__class__.__name__, exc.message, {"error_code": exc.error_code, **exc.details}, request)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, "HTTPException", str(exc.detail), {"status_code": exc.status_code}, request)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error("Unhandled error", path=request.url.path)
        return _error(
            500,
            "InternalServerError",
            "Internal server error",
            {"error_code": ErrorCode.INTERNAL_ERROR.value, "type": type(exc).__name__},
            request,
        )
