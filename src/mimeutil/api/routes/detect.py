"""Content detection endpoint."""

import io
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from ...errors import MimeError
from ...logging import get_logger
from ...mime_type import TextMimeType
from ...negotiation import negotiate
from ...registry import get_most_specific_mime_type
from ...result_set import MimeTypeSet

router = APIRouter()
logger = get_logger(__name__)

# Representations this endpoint can produce, preferred first
RESPONSE_TYPES = "application/json,text/plain"


def _describe(mime_types: MimeTypeSet) -> dict:
    best = get_most_specific_mime_type(mime_types)
    return {
        "mime_types": [
            {
                "mime_type": str(m),
                "specificity": m.specificity,
                "encoding": m.encoding if isinstance(m, TextMimeType) else None,
            }
            for m in mime_types
        ],
        "most_specific": str(best) if best else None,
    }


@router.post("/detect")
async def detect(request: Request, filename: Optional[str] = None):
    """Classify the raw request body.

    With ``filename`` the name-based detectors take part as well. The
    response is JSON or plain text depending on the Accept header.
    Classification runs in the threadpool, off the event loop.
    """
    config = request.app.state.config
    registry = request.app.state.registry

    try:
        representation = negotiate(request.headers.get("accept", ""), RESPONSE_TYPES)
    except MimeError as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    body = await request.body()
    if len(body) > config.api.max_body_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Body exceeds {config.api.max_body_bytes} bytes",
        )

    if filename:
        handle = io.BytesIO(body)
        handle.name = filename
        mime_types = await run_in_threadpool(registry.classify_file, handle)
    else:
        mime_types = await run_in_threadpool(registry.classify_bytes, body)

    logger.debug(f"Detect request: {{'bytes': {len(body)}, 'filename': {filename!r}, 'mime_types': {str(mime_types)!r}}}")

    if representation == "text/plain":
        best = get_most_specific_mime_type(mime_types)
        lines = [f"{m}\t{m.specificity}" for m in mime_types]
        lines.append(f"most-specific\t{best}")
        return PlainTextResponse("\n".join(lines) + "\n")
    return JSONResponse(_describe(mime_types))
