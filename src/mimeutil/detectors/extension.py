"""Detector that maps file name extensions to MIME types."""

import logging
import mimetypes
from importlib import resources
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Sequence

import platformdirs
import toml

from ..errors import InvalidMimeTypeFormat
from ..mime_type import MimeType, get_extension
from .base import MimeDetector, file_name_of

logger = logging.getLogger(__name__)

APP_NAME = "mimeutil"
USER_MAPPINGS_FILE = "mime-types.toml"


def _split_types(value: object) -> List[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    return []


def load_mappings_file(path: Path) -> Dict[str, List[str]]:
    """Read the ``[extensions]`` table of a TOML mappings file."""
    data = toml.load(path)
    table = data.get("extensions", data)
    mappings: Dict[str, List[str]] = {}
    for extension, value in table.items():
        types = _split_types(value)
        if types:
            mappings[str(extension).lstrip(".")] = types
    return mappings


def bundled_mappings() -> Dict[str, List[str]]:
    text = (resources.files("mimeutil.detectors") / "data" / "mime-types.toml").read_text(encoding="utf-8")
    table = toml.loads(text).get("extensions", {})
    return {str(ext): _split_types(value) for ext, value in table.items()}


def system_mappings() -> Dict[str, List[str]]:
    """Extension table known to the interpreter's ``mimetypes`` module."""
    db = mimetypes.MimeTypes()
    mappings: Dict[str, List[str]] = {}
    for strict in (False, True):
        for extension, mime_type in db.types_map[strict].items():
            mappings[extension.lstrip(".")] = [mime_type]
    return mappings


class ExtensionMimeDetector(MimeDetector):
    """Classifies files by the extension of their name.

    The extension is everything after the first dot of the file name.
    When it has no mapping the part after the next dot is tried, so
    ``archive.v2.tar.gz`` falls back from ``v2.tar.gz`` to ``tar.gz`` and
    then ``gz``. Each step looks the extension up as written first and in
    lower case second. Later tables override earlier ones: the system
    table, the bundled table, the user file, then configured files.
    """

    description = "Determine MIME types from file name extensions"

    def __init__(
        self,
        mappings_files: Sequence[str] = (),
        use_system_types: bool = False,
        use_user_mappings: bool = True,
    ) -> None:
        self.mappings: Dict[str, List[str]] = {}
        if use_system_types:
            self.mappings.update(system_mappings())
        self.mappings.update(bundled_mappings())

        if use_user_mappings:
            user_path = platformdirs.user_config_path(APP_NAME, appauthor=False) / USER_MAPPINGS_FILE
            if user_path.exists():
                self._load(user_path)

        for mappings_file in mappings_files:
            self._load(Path(mappings_file).expanduser())

    def _load(self, path: Path) -> None:
        try:
            self.mappings.update(load_mappings_file(path))
            logger.debug(f"Loaded extension mappings: {{'path': {str(path)!r}}}")
        except (OSError, toml.TomlDecodeError) as e:
            logger.warning(f"Failed to load extension mappings: {{'path': {str(path)!r}, 'error': {str(e)!r}}}")

    def known_mime_types(self) -> List[str]:
        seen: List[str] = []
        for types in self.mappings.values():
            for mime_type in types:
                if mime_type not in seen:
                    seen.append(mime_type)
        return seen

    def lookup(self, file_name: str) -> List[str]:
        """Type strings mapped to the extension of ``file_name``."""
        extension = get_extension(file_name)
        while extension:
            types = self.mappings.get(extension) or self.mappings.get(extension.lower())
            if types:
                return list(types)
            if "." not in extension:
                break
            extension = extension[extension.index(".") + 1:]
        return []

    def _types_for(self, file_name: str) -> List[MimeType]:
        mime_types: List[MimeType] = []
        for value in self.lookup(file_name):
            try:
                mime_types.append(MimeType(value))
            except InvalidMimeTypeFormat:
                logger.debug(f"Ignoring malformed extension mapping: {{'mime_type': {value!r}}}")
        return mime_types

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        return self._types_for(path.name)

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        return self._types_for(Path(file_name_of(handle)).name)
