"""Detector using the freedesktop.org shared MIME database globs."""

import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Sequence, Tuple

import platformdirs

from ..errors import InvalidMimeTypeFormat
from ..mime_type import MimeType
from .base import MimeDetector, file_name_of

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 50
_WILDCARDS = frozenset("*?[")


def default_mime_directories() -> List[Path]:
    """User data directory first, then the system shared MIME directories."""
    directories = [platformdirs.user_data_path("mime", appauthor=False)]
    directories.extend(Path(p) / "mime" for p in ("/usr/local/share", "/usr/share"))
    return directories


@dataclass
class GlobEntry:
    """One glob rule from a globs or globs2 file."""
    weight: int
    mime_type: str
    pattern: str
    case_sensitive: bool = False

    @property
    def is_literal(self) -> bool:
        return not _WILDCARDS.intersection(self.pattern)


def _rank(entry: GlobEntry) -> Tuple[int, bool, int]:
    return (entry.weight, entry.case_sensitive, len(entry.pattern))


def parse_glob_line(line: str) -> Optional[GlobEntry]:
    """Parse ``weight:type:glob[:flags]`` (globs2) or ``type:glob`` (globs)."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    parts = line.split(":")
    if parts[0].isdigit() and len(parts) >= 3:
        flags = parts[3].split(",") if len(parts) > 3 else []
        return GlobEntry(int(parts[0]), parts[1], parts[2], "cs" in flags)
    if len(parts) >= 2:
        return GlobEntry(DEFAULT_WEIGHT, parts[0], ":".join(parts[1:]))
    return None


class OpendesktopMimeDetector(MimeDetector):
    """Classifies files by name using shared MIME database glob rules.

    Literal file names win over patterns. Among matching patterns the
    highest weight wins, then a case-sensitive rule, then the longest
    pattern. Matching ignores case unless the rule carries the ``cs``
    flag.
    """

    description = "Determine MIME types from file names using the shared MIME database"

    def __init__(self, globs_files: Optional[Sequence[str]] = None) -> None:
        self._literals: Dict[str, List[GlobEntry]] = {}
        self._literals_folded: Dict[str, List[GlobEntry]] = {}
        self._patterns: List[GlobEntry] = []

        if globs_files:
            for globs_file in globs_files:
                self._load(Path(globs_file).expanduser())
        else:
            for directory in default_mime_directories():
                for name in ("globs2", "globs"):
                    candidate = directory / name
                    if candidate.exists():
                        self._load(candidate)
                        break

    def _load(self, path: Path) -> None:
        count = 0
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    entry = parse_glob_line(line)
                    if entry is None:
                        continue
                    self.add_entry(entry)
                    count += 1
        except OSError as e:
            logger.warning(f"Failed to read globs file: {{'path': {str(path)!r}, 'error': {str(e)!r}}}")
            return
        logger.debug(f"Loaded glob rules: {{'path': {str(path)!r}, 'rules': {count}}}")

    def add_entry(self, entry: GlobEntry) -> None:
        if entry.is_literal:
            self._literals.setdefault(entry.pattern, []).append(entry)
            if not entry.case_sensitive:
                self._literals_folded.setdefault(entry.pattern.lower(), []).append(entry)
        else:
            self._patterns.append(entry)

    def known_mime_types(self) -> List[str]:
        seen: List[str] = []
        entries = [e for group in self._literals.values() for e in group] + self._patterns
        for entry in entries:
            if entry.mime_type not in seen:
                seen.append(entry.mime_type)
        return seen

    def lookup(self, file_name: str) -> List[str]:
        """Type strings of the best glob rules matching ``file_name``."""
        literal = self._literals.get(file_name) or self._literals_folded.get(file_name.lower())
        if literal:
            return self._best(literal)

        folded = file_name.lower()
        matches: List[GlobEntry] = []
        for entry in self._patterns:
            if entry.case_sensitive:
                matched = fnmatchcase(file_name, entry.pattern)
            else:
                matched = fnmatchcase(folded, entry.pattern.lower())
            if matched:
                matches.append(entry)
        return self._best(matches)

    @staticmethod
    def _best(entries: List[GlobEntry]) -> List[str]:
        if not entries:
            return []
        top: Tuple[int, bool, int] = max(_rank(e) for e in entries)
        result: List[str] = []
        for entry in entries:
            if _rank(entry) == top and entry.mime_type not in result:
                result.append(entry.mime_type)
        return result

    def _types_for(self, file_name: str) -> List[MimeType]:
        mime_types: List[MimeType] = []
        for value in self.lookup(file_name):
            try:
                mime_types.append(MimeType(value))
            except InvalidMimeTypeFormat:
                logger.debug(f"Ignoring malformed glob type: {{'mime_type': {value!r}}}")
        return mime_types

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        return self._types_for(path.name)

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        return self._types_for(Path(file_name_of(handle)).name)
