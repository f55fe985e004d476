"""HTTP Accept header negotiation against the types a caller can provide."""

import logging
import math
from typing import Dict, List, Tuple

from .errors import InvalidQuality, MimeError
from .mime_type import MimeType, parse_mime_type

logger = logging.getLogger(__name__)

ANY_MIME_TYPE = "*/*"

# Implied qualities when no q= parameter is given
WILDCARD_MEDIA_QUALITY = 0.01
WILDCARD_SUB_QUALITY = 0.02
DEFAULT_QUALITY = 1.0

Candidate = Tuple[str, str, float]


def get_quality(mime_type: str) -> float:
    """Quality factor of one Accept entry.

    An explicit ``q=`` parameter wins and is capped at 1.0. Without one a
    wildcard media type scores 0.01, a wildcard sub type 0.02 and a
    concrete type 1.0. A blank entry scores 0.0.

    Raises:
        InvalidQuality: If the q parameter is not a number
        InvalidMimeTypeFormat: If the type part is malformed
    """
    if mime_type is None or not mime_type.strip():
        return 0.0

    type_part, *params = mime_type.split(";")
    media, sub = parse_mime_type(type_part)
    for param in params:
        param = param.strip()
        if not param.startswith("q="):
            continue
        raw = param[2:].strip()
        try:
            quality = float(raw)
        except ValueError as e:
            raise InvalidQuality(
                f"Invalid quality indicator [{param}]. Must be a number between 0 and 1",
                mime_type=mime_type,
            ) from e
        if math.isnan(quality):
            raise InvalidQuality(f"Invalid quality indicator [{param}]", mime_type=mime_type)
        return min(quality, 1.0)

    if "*" in media:
        return WILDCARD_MEDIA_QUALITY
    if "*" in sub:
        return WILDCARD_SUB_QUALITY
    return DEFAULT_QUALITY


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _candidates(wanted: List[str], provided: List[str]) -> Dict[str, List[Candidate]]:
    """Group every acceptable provided type by media type, in wanted order."""
    candidates: Dict[str, List[Candidate]] = {}
    for entry in wanted:
        media, sub = parse_mime_type(entry)
        quality = get_quality(entry)

        if "*" in media:
            for offered in provided:
                offered_media, offered_sub = parse_mime_type(offered)
                candidates.setdefault(offered_media, []).append((offered_media, offered_sub, quality))
        elif "*" in sub:
            for offered in provided:
                offered_media, offered_sub = parse_mime_type(offered)
                if offered_media == media:
                    candidates.setdefault(media, []).append((media, offered_sub, quality))
        elif f"{media}/{sub}" in provided:
            candidates.setdefault(media, []).append((media, sub, quality))
    return candidates


def negotiate(wanted: str, provided: str) -> MimeType:
    """Pick the provided type that best satisfies an Accept header.

    Args:
        wanted: Accept header value, optionally with its ``Accept:`` prefix
        provided: Comma-separated types the caller can produce

    Returns:
        The best provided type. A single provided type is always returned
        as is; when nothing is acceptable the first provided type is used.

    Raises:
        MimeError: If nothing is provided
        InvalidQuality: If a q parameter in ``wanted`` is malformed
        InvalidMimeTypeFormat: If an entry of ``wanted`` or ``provided`` is not a type
    """
    if provided is None or not provided.strip():
        raise MimeError("Must specify at least one mime type that can be provided.")
    offered = _split_list(provided)
    if len(offered) == 1:
        return MimeType(offered[0])

    if wanted is None or not wanted.strip():
        wanted = ANY_MIME_TYPE
    # Accept: header name
    colon = wanted.find(":")
    if colon > 0:
        wanted = wanted[colon + 1:]
    wanted = wanted.replace(" ", "")

    best: MimeType | None = None
    best_quality = 0.0
    for entries in _candidates(_split_list(wanted), offered).values():
        for media, sub, quality in entries:
            if quality > best_quality:
                best_quality = quality
                best = MimeType(f"{media}/{sub}")

    if best is None:
        logger.debug(f"No acceptable type, using first provided: {{'wanted': {wanted!r}, 'provided': {offered!r}}}")
        return MimeType(offered[0])
    return best


get_preferred_mime_type = negotiate
