"""FastAPI server setup."""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config.schema import MimeUtilConfig
from ..logging import get_logger
from ..registry import MimeDetectorRegistry, create_registry

logger = get_logger(__name__)


def create_app(config: MimeUtilConfig, registry: Optional[MimeDetectorRegistry] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Configuration object
        registry: Registry used by the routes; built from ``config`` when omitted
    """
    app = FastAPI(
        title="mimeutil",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.config = config
    app.state.registry = registry if registry is not None else create_registry(config)

    # CORS middleware
    if config.api.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Register routes
    from .routes import detect, health, negotiate

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(detect.router, prefix="/api", tags=["detect"])
    app.include_router(negotiate.router, prefix="/api", tags=["negotiate"])

    logger.info(
        "FastAPI application created",
        extra={"extra_fields": {
            "version": __version__,
            "detectors": [d.name for d in app.state.registry.detectors()],
        }},
    )

    return app
