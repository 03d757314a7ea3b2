"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perfect_names import __version__
from perfect_names.api.routes import health, names
from perfect_names.config import Settings, get_settings
from perfect_names.services.resolver import ResolutionContext, create_resolution_context

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[ResolutionContext] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Application settings, defaults to the environment
        context: Pre-built resolution context, e.g. with fake providers
    """
    settings = settings or get_settings()
    context = context or create_resolution_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        logger.info(f"Starting Perfect? names API in {settings.environment} mode")
        logger.info(
            f"Name resolution enabled: {settings.name_resolution_enabled}, "
            f"providers: {[p.name for p in context.providers]}"
        )
        yield
        logger.info(f"Shutting down Perfect? names API, cache stats: {context.cache.get_stats()}")

    app = FastAPI(
        title="Perfect? Names API",
        description="Address to ENS / Base name resolution with caching and fault tolerance",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.resolution = context

    # CORS Configuration - Restrict in production
    cors_origins = ["*"] if not settings.is_production else [settings.frontend_url]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True if settings.is_production else False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(names.router, prefix="/api", tags=["Names"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Perfect? Names API",
            "version": __version__,
            "status": "running",
            "environment": settings.environment,
            "docs": "/docs" if settings.debug else "disabled",
            "endpoints": {
                "health": "/health",
                "resolve_name": "/api/resolve-name",
                "batch_resolve": "/api/batch-resolve",
                "stats": "/api/names/stats",
                "maintenance": "/api/names/maintenance",
            },
        }

    return app


configure_logging(get_settings())

app = create_app()


def main():
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
