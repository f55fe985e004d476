"""MIME type value objects and string helpers."""

import os
import sys
import threading
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from .errors import InvalidMimeTypeFormat, MimeError

UNKNOWN_MIME_TYPE = "application/octet-stream"
DIRECTORY_MIME_TYPE = "application/directory"
DEFAULT_ENCODING = "UTF-8"

_ILLEGAL_TOKEN_CHARS = frozenset(" \t\r\n,")


def parse_mime_type(mime_type: str) -> Tuple[str, str]:
    """Split a MIME type string into its (media, sub) tokens.

    Parameters after ``;`` are ignored.

    Raises:
        InvalidMimeTypeFormat: If the string is blank, has no ``/``, or a
            token is empty or contains whitespace or commas
    """
    if mime_type is None or not str(mime_type).strip():
        raise InvalidMimeTypeFormat("MIME type must not be blank", mime_type=mime_type)

    value = str(mime_type).split(";", 1)[0].strip()
    if "/" not in value:
        raise InvalidMimeTypeFormat(f"Missing media type separator in {mime_type!r}", mime_type=mime_type)
    media, sub = value.split("/", 1)
    media, sub = media.strip(), sub.strip()

    if not media or not sub:
        raise InvalidMimeTypeFormat(f"Invalid MIME type: {mime_type!r}", mime_type=mime_type)
    if _ILLEGAL_TOKEN_CHARS.intersection(media) or _ILLEGAL_TOKEN_CHARS.intersection(sub) or "/" in sub:
        raise InvalidMimeTypeFormat(f"Invalid MIME type: {mime_type!r}", mime_type=mime_type)

    return media, sub


class MimeType:
    """A (media type, sub type) pair with a ranking counter.

    Identity and hashing use only the two tokens. ``specificity`` is a
    ranking hint that accumulates when several detectors agree.
    """

    def __init__(self, mime_type: Union[str, "MimeType"], specificity: int = 0) -> None:
        if isinstance(mime_type, MimeType):
            self._media_type = mime_type.media_type
            self._sub_type = mime_type.sub_type
            if not specificity:
                specificity = mime_type.specificity
        else:
            self._media_type, self._sub_type = parse_mime_type(mime_type)
        if specificity < 0:
            raise MimeError("Specificity must not be negative", specificity=specificity)
        self.specificity = specificity

    @property
    def media_type(self) -> str:
        return self._media_type

    @property
    def sub_type(self) -> str:
        return self._sub_type

    @property
    def key(self) -> Tuple[str, str]:
        return (self._media_type, self._sub_type)

    def copy(self) -> "MimeType":
        return MimeType(self, specificity=self.specificity)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, MimeType):
            return self.key == other.key
        if isinstance(other, str):
            try:
                return self.key == parse_mime_type(other)
            except InvalidMimeTypeFormat:
                return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self._media_type}/{self._sub_type}"

    def __repr__(self) -> str:
        return f"MimeType({str(self)!r}, specificity={self.specificity})"


class _KnownEncodings:
    """Process-wide registry of encoding names a TextMimeType may carry."""

    def __init__(self, names: List[str]) -> None:
        self._lock = threading.Lock()
        self._names: dict = {}
        for name in names:
            self.add(name)

    def add(self, name: str) -> None:
        if not name or not name.strip():
            return
        name = name.strip()
        with self._lock:
            self._names.setdefault(name.lower(), name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.strip().lower() in self._names

    def canonical(self, name: str) -> str:
        return self._names[name.strip().lower()]

    def names(self) -> List[str]:
        with self._lock:
            return list(self._names.values())


_known_encodings = _KnownEncodings([
    "US-ASCII", "ASCII",
    "windows-1250", "Cp1250",
    "windows-1251", "Cp1251",
    "windows-1252", "Cp1252",
    "windows-1253", "Cp1253",
    "windows-1254", "Cp1254",
    "windows-1257", "Cp1257",
    "ISO-8859-1", "ISO8859_1",
    "ISO-8859-2", "ISO8859_2",
    "ISO-8859-4", "ISO8859_4",
    "ISO-8859-5", "ISO8859_5",
    "ISO-8859-7", "ISO8859_7",
    "ISO-8859-9", "ISO8859_9",
    "ISO-8859-13", "ISO8859_13",
    "ISO-8859-15", "ISO8859_15",
    "KOI8-R", "KOI8_R",
    "UTF-8", "UTF8",
    "UTF-16", "UTF-16BE", "UTF-16LE",
    "UnicodeBig", "UnicodeBigUnmarked", "UnicodeLittle", "UnicodeLittleUnmarked",
])


def add_known_encoding(encoding: str) -> None:
    """Allow ``encoding`` on TextMimeType instances. Blank names are ignored."""
    _known_encodings.add(encoding)


def is_known_encoding(encoding: Optional[str]) -> bool:
    return encoding in _known_encodings


def get_known_encodings() -> List[str]:
    return _known_encodings.names()


class TextMimeType(MimeType):
    """A MimeType for text content, carrying a character encoding.

    Unknown or blank encodings given to the constructor fall back to
    UTF-8. Handlers may rewrite the type and encoding in place; a result
    set holding the instance must then be re-keyed.
    """

    def __init__(
        self,
        mime_type: Union[str, MimeType],
        encoding: Optional[str] = None,
        specificity: int = 0,
    ) -> None:
        super().__init__(mime_type, specificity=specificity)
        if encoding is None and isinstance(mime_type, TextMimeType):
            encoding = mime_type.encoding
        self._encoding = self._valid_encoding(encoding)

    @staticmethod
    def _valid_encoding(encoding: Optional[str]) -> str:
        if not encoding or not is_known_encoding(encoding):
            return DEFAULT_ENCODING
        return _known_encodings.canonical(encoding)

    @property
    def encoding(self) -> str:
        return self._encoding

    def set_encoding(self, encoding: str) -> None:
        """Change the encoding.

        Raises:
            MimeError: If the encoding is not a known encoding
        """
        if not is_known_encoding(encoding):
            raise MimeError(f"The encoding [{encoding}] is not a supported encoding", encoding=encoding)
        self._encoding = self._valid_encoding(encoding)

    def set_mime_type(self, mime_type: Union[str, MimeType]) -> None:
        """Rewrite the media and sub type in place."""
        if isinstance(mime_type, MimeType):
            self._media_type, self._sub_type = mime_type.key
        else:
            self._media_type, self._sub_type = parse_mime_type(mime_type)

    def copy(self) -> "TextMimeType":
        return TextMimeType(self, encoding=self._encoding, specificity=self.specificity)

    def __repr__(self) -> str:
        return f"TextMimeType({str(self)!r}, encoding={self._encoding!r}, specificity={self.specificity})"


def get_media_type(mime_type: str) -> str:
    """Media part of a MIME type, i.e. the bit before ``/``."""
    return MimeType(mime_type).media_type


def get_sub_type(mime_type: str) -> str:
    """Sub type of a MIME type, i.e. the bit after ``/``."""
    return MimeType(mime_type).sub_type


def get_first_mime_type(mime_types: Optional[str]) -> Optional[MimeType]:
    """First entry of a comma-separated MIME type list, or None when blank."""
    if not mime_types or not mime_types.strip():
        return None
    return MimeType(mime_types.split(",")[0].strip())


def get_extension(file_name: Union[str, os.PathLike]) -> str:
    """Everything after the first dot of the file name, or ``""``.

    ``archive.tar.gz`` gives ``tar.gz``; callers wanting the final suffix
    strip further dots themselves.
    """
    name = Path(file_name).name
    if "." not in name:
        return ""
    return name[name.index(".") + 1:]


def is_text_mime_type(mime_type: Any) -> bool:
    return isinstance(mime_type, TextMimeType)


def get_native_byte_order() -> str:
    """Byte order of this platform, ``"little"`` or ``"big"``."""
    return sys.byteorder
