"""Base class for all MIME detectors."""

import os
from abc import ABC
from pathlib import Path
from typing import BinaryIO, Iterable, List, Union

from ..errors import ClassificationFailure, UnsupportedInput
from ..magic.matcher import preserved_position
from ..mime_type import UNKNOWN_MIME_TYPE, MimeType
from ..result_set import MimeTypeSet

PathLike = Union[str, os.PathLike]


class MimeDetector(ABC):
    """Strategy that proposes MIME types for one kind of evidence.

    Subclasses override the ``_from_*`` hooks for the inputs they can
    handle. A hook that is not overridden raises UnsupportedInput, which
    the registry treats as "contributes nothing" rather than a failure.

    The public ``get_mime_types_*`` methods never report the unknown type
    and, for streams, always leave the read position where it was.
    """

    description: str = ""

    @property
    def name(self) -> str:
        """Registry key: the fully qualified class name."""
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def get_description(self) -> str:
        return self.description

    def known_mime_types(self) -> List[str]:
        """Types this detector can emit, recorded as known on registration."""
        return []

    def get_mime_types_path(self, path: PathLike) -> MimeTypeSet:
        """Classify a filesystem path.

        Raises:
            UnsupportedInput: If this detector does not handle paths
            ClassificationFailure: If the path cannot be read
        """
        path = Path(path)
        try:
            return self._collect(self._from_path(path))
        except OSError as e:
            raise ClassificationFailure(f"Cannot read {path}: {e}", detector=self.name, path=str(path)) from e

    def get_mime_types_file(self, handle: BinaryIO) -> MimeTypeSet:
        try:
            return self._collect(self._from_file(handle))
        except OSError as e:
            raise ClassificationFailure(f"Cannot read file handle: {e}", detector=self.name) from e

    def get_mime_types_bytes(self, data: bytes) -> MimeTypeSet:
        return self._collect(self._from_bytes(bytes(data)))

    def get_mime_types_stream(self, stream: BinaryIO) -> MimeTypeSet:
        with preserved_position(stream):
            try:
                return self._collect(self._from_stream(stream))
            except OSError as e:
                raise ClassificationFailure(f"Cannot read stream: {e}", detector=self.name) from e

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        raise UnsupportedInput(f"{self.name} does not classify paths", detector=self.name)

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        raise UnsupportedInput(f"{self.name} does not classify file handles", detector=self.name)

    def _from_bytes(self, data: bytes) -> Iterable[MimeType]:
        raise UnsupportedInput(f"{self.name} does not classify byte buffers", detector=self.name)

    def _from_stream(self, stream: BinaryIO) -> Iterable[MimeType]:
        raise UnsupportedInput(f"{self.name} does not classify streams", detector=self.name)

    @staticmethod
    def _collect(mime_types: Iterable[MimeType]) -> MimeTypeSet:
        result = MimeTypeSet()
        for mime_type in mime_types or ():
            if mime_type != UNKNOWN_MIME_TYPE:
                result.add(mime_type)
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


def file_name_of(handle: BinaryIO) -> str:
    """Name of an open file, for detectors that only look at names.

    Raises:
        UnsupportedInput: If the handle carries no usable name
    """
    name = getattr(handle, "name", None)
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    if not isinstance(name, str) or not name:
        raise UnsupportedInput("File handle has no name", handle=repr(handle))
    return name


def read_sample(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes from the current position of ``stream``."""
    data = stream.read(size)
    return data or b""
