"""Detector that asks the Windows registry for an extension's content type."""

import logging
import sys
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from ..errors import InvalidMimeTypeFormat, UnsupportedInput
from ..mime_type import MimeType, get_extension
from .base import MimeDetector, file_name_of

logger = logging.getLogger(__name__)


class RegistryBackend:
    def content_type(self, extension: str) -> Optional[str]:  # pragma: no cover - interface
        raise NotImplementedError


class WinRegBackend(RegistryBackend):
    """Reads ``HKEY_CLASSES_ROOT\\.<ext>`` "Content Type" values."""

    def __init__(self) -> None:  # pragma: no cover - Windows only
        import winreg  # type: ignore

        self._reg = winreg

    def content_type(self, extension: str) -> Optional[str]:  # pragma: no cover - Windows only
        reg = self._reg
        try:
            handle = reg.OpenKeyEx(reg.HKEY_CLASSES_ROOT, f".{extension}", 0, reg.KEY_READ)
        except OSError:
            return None
        try:
            value, _typ = reg.QueryValueEx(handle, "Content Type")
        except OSError:
            return None
        finally:
            reg.CloseKey(handle)
        return str(value) if value else None


class WindowsRegistryMimeDetector(MimeDetector):
    """Best-effort lookup of a file extension in the Windows registry.

    Only names can be classified. On other platforms every call reports
    unsupported input unless a backend is supplied.
    """

    description = "Determine MIME types from file extensions using the Windows registry"

    def __init__(self, backend: Optional[RegistryBackend] = None) -> None:
        if backend is None and sys.platform == "win32":
            backend = WinRegBackend()
        self.backend = backend

    def _types_for(self, file_name: str) -> List[MimeType]:
        if self.backend is None:
            raise UnsupportedInput("Windows registry is not available on this platform", platform=sys.platform)
        extension = get_extension(file_name)
        # registry keys hold the final suffix only
        if "." in extension:
            extension = extension.rsplit(".", 1)[1]
        if not extension:
            return []
        try:
            value = self.backend.content_type(extension)
        except OSError as e:
            logger.debug(f"Registry lookup failed: {{'extension': {extension!r}, 'error': {str(e)!r}}}")
            return []
        if not value:
            return []
        try:
            return [MimeType(value)]
        except InvalidMimeTypeFormat:
            logger.debug(f"Ignoring malformed registry content type: {{'value': {value!r}}}")
            return []

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        return self._types_for(path.name)

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        return self._types_for(Path(file_name_of(handle)).name)
