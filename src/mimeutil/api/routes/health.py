"""Health check endpoints."""

from fastapi import APIRouter, Request

from ... import __version__
from ...logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    registry = request.app.state.registry

    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "version": __version__,
        "detectors": [d.name for d in registry.detectors()],
    }
