"""Accept header negotiation endpoint."""

from fastapi import APIRouter, HTTPException, Request

from ...errors import MimeError
from ...logging import get_logger
from ...negotiation import negotiate

router = APIRouter()
logger = get_logger(__name__)


@router.get("/negotiate")
async def negotiate_type(request: Request, provided: str):
    """Pick the best of ``provided`` for the request's Accept header."""
    accept = request.headers.get("accept", "")
    try:
        chosen = negotiate(accept, provided)
    except MimeError as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    logger.debug(f"Negotiated: {{'accept': {accept!r}, 'provided': {provided!r}, 'chosen': {str(chosen)!r}}}")

    return {"mime_type": str(chosen), "accept": accept}
