"""FastAPI application factory.

Builds the FastAPI app with middleware, routes, and lifespan events. The
lifespan owns the single outbound ``httpx.AsyncClient`` every import shares.

Called by: Uvicorn (``uvicorn taverns.main:app``)
Depends on: config.py, environment.py, routes/*, middleware.py
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taverns.api.middleware import register_exception_handlers, register_middleware
from taverns.config import get_settings
from taverns.core.environment import validate_environment
from taverns.models.database import engine


def configure_logging() -> None:
    """Configure structlog once; console output in development, JSON in production."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(levelname)s %(name)s: %(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if not settings.is_production
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Validate configuration and open the shared HTTP client.

    Shutdown closes the client and disposes the database engine.
    """
    settings = get_settings()
    validate_environment(settings)
    app.state.http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    logger.info(
        "app_startup",
        env=settings.app_env,
        llm_provider=settings.llm_provider,
        bgg_cookie=settings.has_bgg_cookie,
        firecrawl=bool(settings.firecrawl_api_key),
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await engine.dispose()
        logger.info("app_shutdown")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Taverns Game Import",
        description="Board game import pipeline: BoardGameGeek + page scrape → library and shared catalog",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)
    register_exception_handlers(app)

    from taverns.api.routes import games, health

    app.include_router(health.router)
    app.include_router(games.router)

    return app


app = create_app()
