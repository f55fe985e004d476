"""Error definitions for mimeutil."""

from typing import Any, Dict


class MimeError(Exception):
    """Base exception for all mimeutil errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class InvalidMimeTypeFormat(MimeError):
    """MIME type string is malformed."""
    pass


class InvalidMagicEntry(MimeError):
    """A magic rule group could not be parsed."""
    pass


class InvalidQuality(MimeError):
    """Quality parameter of a wanted type is not a number."""
    pass


class UnsupportedInput(MimeError):
    """Detector cannot classify this kind of input."""
    pass


class ClassificationFailure(MimeError):
    """Detector raised while classifying an input."""
    pass


class ConfigurationError(MimeError):
    """Configuration or detector manifest is invalid."""
    pass
