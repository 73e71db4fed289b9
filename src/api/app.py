"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production (host, port and workers from settings)
    thriftshopper-search
    PYTHONPATH=src python -m api.app
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from search.errors import SearchError
from search.variations import DEFAULT_VARIATIONS


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup configures logging and reports which optional integrations
    have credentials. Clients are built lazily on first request.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting search API",
        environment=settings.environment,
        port=settings.port,
        facets=len(DEFAULT_VARIATIONS),
        analyzers=[
            name for name, key in (
                ("openai", settings.openai_api_key),
                ("claude", settings.anthropic_api_key),
                ("google", settings.google_vision_api_key),
            ) if key
        ],
        term_extractor=settings.term_extractor_enabled and bool(settings.openai_api_key),
    )

    yield

    logger.info("Shutting down search API")


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.info("Rejected invalid request", path=request.url.path, details=details)
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


async def _search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    logger.error(
        "Search failed",
        path=request.url.path,
        stage=exc.stage,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=500, content={"error": "Search failed", "details": str(exc)})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="ThriftShopper Search API",
        description="""
        Listing discovery for a secondhand marketplace.

        ## Main Endpoints

        - `POST /api/search/visual` - Search by photo (multi-model vision tagging)
        - `POST /api/search/semantic` - Free-text / voice search
        - `POST /api/search/mood` - Mood-wheel facet search
        - `POST /api/search/semantic-mood` - Embedding-only mood search
        - `GET /api/search/facets` - Mood-wheel facets
        - `GET /api/debug/mood-filter` - Mood filter diagnostics

        ## Health Checks

        - `/health`, `/health/detailed`, `/ready`, `/live`
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Error handlers
    # =========================================================================

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SearchError, _search_error_handler)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.search import debug_router, router as search_router
    app.include_router(search_router)
    app.include_router(debug_router)

    return app


# Default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()


def main() -> None:
    """Serve the API with uvicorn using HOST, PORT and WORKERS from settings."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=settings.host,
        port=settings.port,
        workers=1 if settings.is_development else settings.workers,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
