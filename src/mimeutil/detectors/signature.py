"""MIME type detection using the filetype library (pure Python, cross-platform)."""

from pathlib import Path
from typing import BinaryIO, Iterable, List

import filetype

from ..mime_type import MimeType
from .base import MimeDetector, read_sample

# filetype inspects at most this many leading bytes
SIGNATURE_SAMPLE_SIZE = 8192


class SignatureMimeDetector(MimeDetector):
    """Classifies content by the file signatures known to ``filetype``.

    Works without libmagic or rule files. Returns nothing when
    ``filetype`` does not recognise the leading bytes.
    """

    description = "Determine MIME types from file signatures using the filetype library"

    def known_mime_types(self) -> List[str]:
        return [matcher.mime for matcher in filetype.types]

    def _guess(self, sample: bytes) -> List[MimeType]:
        if not sample:
            return []
        kind = filetype.guess(sample)
        if kind is None:
            return []
        return [MimeType(kind.mime)]

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        if path.is_dir():
            return []
        with open(path, "rb") as f:
            return self._guess(read_sample(f, SIGNATURE_SAMPLE_SIZE))

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        return self.get_mime_types_stream(handle)

    def _from_bytes(self, data: bytes) -> Iterable[MimeType]:
        return self._guess(data[:SIGNATURE_SAMPLE_SIZE])

    def _from_stream(self, stream: BinaryIO) -> Iterable[MimeType]:
        return self._guess(read_sample(stream, SIGNATURE_SAMPLE_SIZE))
