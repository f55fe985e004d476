"""Detector that recognises text content and guesses its encoding."""

import codecs
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Tuple

from ..mime_type import DEFAULT_ENCODING, TextMimeType
from .base import MimeDetector, read_sample

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 4096
TEXT_PLAIN = "text/plain"

_ASCII_WHITELIST = {*range(32, 127), 9, 10, 12, 13}

# BOM -> encoding name as known to TextMimeType
_BOMS: Tuple[Tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "UTF-8"),
    (codecs.BOM_UTF16_LE, "UTF-16LE"),
    (codecs.BOM_UTF16_BE, "UTF-16BE"),
)

# Encoding names as known to TextMimeType -> Python codec
_CODEC_ALIASES = {
    "unicodebig": "utf-16",
    "unicodebigunmarked": "utf-16-be",
    "unicodelittle": "utf-16",
    "unicodelittleunmarked": "utf-16-le",
}


def _ascii_ratio(data: bytes) -> float:
    if not data:
        return 1.0
    matches = sum(1 for b in data if b in _ASCII_WHITELIST)
    return matches / len(data)


def _strip_bom(sample: bytes) -> Tuple[bytes, Optional[str]]:
    for bom, encoding in _BOMS:
        if sample.startswith(bom):
            return sample[len(bom):], encoding
    return sample, None


def _utf16_without_bom(sample: bytes, thresh: float) -> Optional[str]:
    """Spot BOM-less UTF-16 from the NUL bytes in every other position."""
    if not sample or sample.count(0) < len(sample) // 4:
        return None
    even_bytes = sample[::2]
    odd_bytes = sample[1::2]
    if _ascii_ratio(even_bytes) >= thresh and odd_bytes.count(0) / max(len(odd_bytes), 1) >= 0.6:
        return "UTF-16LE"
    if _ascii_ratio(odd_bytes) >= thresh and even_bytes.count(0) / max(len(even_bytes), 1) >= 0.6:
        return "UTF-16BE"
    return None


def guess_encoding(sample: bytes, thresh: float = 0.90) -> Optional[str]:
    """Guess the encoding of a text sample.

    Returns:
        Encoding name, or None when the sample does not look like text
    """
    if not sample:
        return None

    stripped, bom_encoding = _strip_bom(sample)
    if bom_encoding:
        return bom_encoding

    utf16 = _utf16_without_bom(stripped, thresh)
    if utf16:
        return utf16
    if 0 in stripped:
        return None

    try:
        # a multi-byte sequence cut by the sample boundary is not an error
        codecs.getincrementaldecoder("utf-8")().decode(stripped, final=False)
        if _ascii_ratio(stripped) >= thresh or _is_mostly_printable(stripped.decode("utf-8", errors="ignore"), thresh):
            return "UTF-8"
    except UnicodeDecodeError:
        pass

    try:
        text = stripped.decode("windows-1252")
    except UnicodeDecodeError:
        return None
    if _is_mostly_printable(text, thresh):
        return "windows-1252"
    return None


def _is_mostly_printable(text: str, thresh: float) -> bool:
    if not text:
        return True
    printable = sum(1 for ch in text if ch.isprintable() or ch in "\t\n\r\f")
    return printable / len(text) >= thresh


def decode_sample(sample: bytes, encoding: str = DEFAULT_ENCODING) -> str:
    """Decode ``sample`` for handlers, replacing undecodable bytes."""
    codec = _CODEC_ALIASES.get(encoding.lower(), encoding)
    try:
        codecs.lookup(codec)
    except LookupError:
        codec = "latin-1"
    text = sample.decode(codec, errors="replace")
    return text.lstrip("\ufeff")


class TextMimeDetector(MimeDetector):
    """Reports ``text/plain`` with a guessed encoding for text content.

    Empty content is left to other detectors. Only the first
    ``sample_size`` bytes are examined.
    """

    description = "Determine whether content is text and guess its encoding"

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE, threshold: float = 0.90) -> None:
        self.sample_size = sample_size
        self.threshold = threshold

    def known_mime_types(self) -> List[str]:
        return [TEXT_PLAIN]

    def classify_sample(self, sample: bytes) -> List[TextMimeType]:
        encoding = guess_encoding(sample[:self.sample_size], self.threshold)
        if encoding is None:
            return []
        logger.debug(f"Text content detected: {{'encoding': {encoding!r}}}")
        return [TextMimeType(TEXT_PLAIN, encoding)]

    def _from_path(self, path: Path) -> Iterable[TextMimeType]:
        if path.is_dir():
            return []
        with open(path, "rb") as f:
            return self.classify_sample(read_sample(f, self.sample_size))

    def _from_file(self, handle: BinaryIO) -> Iterable[TextMimeType]:
        return self.get_mime_types_stream(handle)

    def _from_bytes(self, data: bytes) -> Iterable[TextMimeType]:
        return self.classify_sample(data)

    def _from_stream(self, stream: BinaryIO) -> Iterable[TextMimeType]:
        return self.classify_sample(read_sample(stream, self.sample_size))
