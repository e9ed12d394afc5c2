"""FastAPI application entry point.

Creates and configures the FastAPI application with all
middleware, routes, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from model_router import __version__
from model_router.api.middleware import setup_middleware
from model_router.api.routes import router
from model_router.config import RouterSettings, get_router_settings
from model_router.router import ModelRouter
from shared.logging import configure_logging, get_logger


def setup_logging(settings: RouterSettings) -> None:
    """Configure application logging."""
    configure_logging(level=settings.log_level.value, format_type=settings.log_format.value)

    # Reduce noise from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Builds the model router unless one was supplied to ``create_app``,
    then runs its startup and shutdown.
    """
    model_router = getattr(app.state, "model_router", None)
    if model_router is None:
        model_router = ModelRouter(settings=app.state.settings)
        app.state.model_router = model_router

    logger.info(f"Starting model router v{__version__}")
    await model_router.startup()

    yield

    logger.info("Shutting down model router")
    await model_router.shutdown()


def create_app(
    settings: RouterSettings | None = None,
    model_router: ModelRouter | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Router settings. Loaded from the environment if None.
        model_router: Prebuilt router, mainly for tests.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or (model_router.settings if model_router else get_router_settings())

    app = FastAPI(
        title="Model Router",
        description="Routes generation requests across local and hosted model "
        "providers with health-aware selection, fallback and rate limiting.",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )
    app.state.settings = settings
    if model_router is not None:
        app.state.model_router = model_router

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_middleware(app)

    app.include_router(router)

    return app


def main() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_router_settings()
    setup_logging(settings)

    uvicorn.run(
        "model_router.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
