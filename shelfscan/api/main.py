"""
ShelfScan API

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request
from loguru import logger

from shelfscan import __version__
from shelfscan.config import Settings, get_settings
from shelfscan.providers.errors import AIProviderError

from .dependencies import get_service_container, init_services
from .middleware import LoggingConfig, setup_exception_handlers, setup_logging
from .routes import analysis, shelves
from .schemas import HealthResponse


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the service container on startup and closes HTTP clients on
    shutdown.
    """
    settings = app.state.settings
    logger.info(f"Starting ShelfScan in {settings.environment} mode (provider: {settings.ai_provider})")

    services = init_services(settings)
    app.state.services = services

    try:
        yield
    finally:
        logger.info("Shutting down ShelfScan...")
        await services.close()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="ShelfScan",
        description="Bookshelf photo analysis against a personal collection.",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware
    # ==========================================================================

    setup_logging(app, config=LoggingConfig(enabled=True))
    setup_exception_handlers(app)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"
    app.include_router(analysis.router, prefix=api_prefix)
    app.include_router(shelves.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """
        Health check endpoint.

        Reports whether the configured vision backend is usable.
        """
        container = get_service_container()
        components = {}
        capabilities = None

        try:
            provider = container.provider
            components["vision_provider"] = f"configured ({provider.name})"
            capabilities = provider.get_capabilities().to_dict()
        except AIProviderError as e:
            components["vision_provider"] = f"not_configured: {e.message}"

        if container.settings.google_books_api_key:
            components["google_books"] = "configured"
        else:
            components["google_books"] = "anonymous"

        healthy = capabilities is not None
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            version=__version__,
            components=components,
            capabilities=capabilities,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "shelfscan.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        workers=1 if settings.debug else 4,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
