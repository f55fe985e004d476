"""MIME type detection from magic rules, names and content, plus Accept negotiation.

Module-level functions operate on the process-wide registry returned by
``get_registry()``, which is built from the loaded configuration on first
use.
"""

import os
from typing import Any, Optional, Union

from .detectors import MimeDetector
from .errors import (
    ClassificationFailure,
    ConfigurationError,
    InvalidMagicEntry,
    InvalidMimeTypeFormat,
    InvalidQuality,
    MimeError,
    UnsupportedInput,
)
from .handlers import MimeHandler, XmlDeclarationHandler
from .mime_type import (
    DIRECTORY_MIME_TYPE,
    UNKNOWN_MIME_TYPE,
    MimeType,
    TextMimeType,
    add_known_encoding,
    get_extension,
    get_first_mime_type,
    get_known_encodings,
    get_media_type,
    get_native_byte_order,
    get_sub_type,
    is_known_encoding,
    is_text_mime_type,
)
from .negotiation import get_preferred_mime_type, get_quality, negotiate
from .registry import (
    MimeDetectorRegistry,
    create_registry,
    get_most_specific_mime_type,
    get_registry,
    set_registry,
)
from .result_set import MimeTypeSet

__version__ = "0.1.0"


def get_mime_types(target: Any, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
    """Classify a path, byte buffer, named file handle or stream."""
    if isinstance(target, (bytes, bytearray, memoryview)):
        return classify_bytes(target, unknown_mime_type)
    if isinstance(target, (str, os.PathLike)):
        return classify_path(target, unknown_mime_type)
    if hasattr(target, "read"):
        name = getattr(target, "name", None)
        if isinstance(name, (str, bytes)) and name:
            return classify_file(target, unknown_mime_type)
        return classify_stream(target, unknown_mime_type)
    raise UnsupportedInput(f"Cannot classify {type(target).__name__}", target=repr(target))


def classify_path(path: Union[str, os.PathLike], unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
    return get_registry().classify_path(path, unknown_mime_type)


def classify_file(handle, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
    return get_registry().classify_file(handle, unknown_mime_type)


def classify_bytes(data: bytes, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
    return get_registry().classify_bytes(data, unknown_mime_type)


def classify_stream(stream, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
    return get_registry().classify_stream(stream, unknown_mime_type)


def register_mime_detector(detector: Union[MimeDetector, str], **options) -> MimeDetector:
    """Register a detector instance, or a detector class by dotted path."""
    if isinstance(detector, str):
        return get_registry().register_class(detector, **options)
    return get_registry().register(detector)


def unregister_mime_detector(detector: Union[MimeDetector, str]) -> Optional[MimeDetector]:
    return get_registry().unregister(detector)


def get_mime_detector(name: str) -> Optional[MimeDetector]:
    return get_registry().get_detector(name)


def add_mime_handler(handler: MimeHandler) -> None:
    get_registry().add_handler(handler)


def remove_mime_handler(handler: MimeHandler) -> bool:
    return get_registry().remove_handler(handler)


def add_known_mime_type(mime_type: Union[str, MimeType]) -> None:
    get_registry().add_known_mime_type(mime_type)


def is_mime_type_known(mime_type: Union[str, MimeType]) -> bool:
    return get_registry().is_mime_type_known(mime_type)


__all__ = [
    'ClassificationFailure',
    'ConfigurationError',
    'DIRECTORY_MIME_TYPE',
    'InvalidMagicEntry',
    'InvalidMimeTypeFormat',
    'InvalidQuality',
    'MimeDetector',
    'MimeDetectorRegistry',
    'MimeError',
    'MimeHandler',
    'MimeType',
    'MimeTypeSet',
    'TextMimeType',
    'UNKNOWN_MIME_TYPE',
    'UnsupportedInput',
    'XmlDeclarationHandler',
    'add_known_encoding',
    'add_known_mime_type',
    'add_mime_handler',
    'classify_bytes',
    'classify_file',
    'classify_path',
    'classify_stream',
    'create_registry',
    'get_extension',
    'get_first_mime_type',
    'get_known_encodings',
    'get_media_type',
    'get_mime_detector',
    'get_mime_types',
    'get_most_specific_mime_type',
    'get_native_byte_order',
    'get_preferred_mime_type',
    'get_quality',
    'get_registry',
    'get_sub_type',
    'is_known_encoding',
    'is_mime_type_known',
    'is_text_mime_type',
    'negotiate',
    'register_mime_detector',
    'remove_mime_handler',
    'set_registry',
    'unregister_mime_detector',
]
