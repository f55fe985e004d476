"""Detector backed by compiled Unix magic rules."""

import glob
import logging
from importlib import resources
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Sequence

import platformdirs

from ..errors import InvalidMimeTypeFormat
from ..logging import classification_extra
from ..magic.grammar import RuleForest, compile_file, compile_rules
from ..magic.matcher import (
    TEXT_SAMPLE_SIZE,
    BufferSource,
    ByteSource,
    StreamSource,
    check_for_text_plain,
    match,
)
from ..mime_type import DIRECTORY_MIME_TYPE, MimeType, TextMimeType
from .base import MimeDetector

logger = logging.getLogger(__name__)

APP_NAME = "mimeutil"
USER_RULES_FILE = "magic.mime"

DEFAULT_SYSTEM_LOCATIONS = (
    "/etc/magic.mime",
    "/usr/share/file/magic.mime",
    "/usr/share/mimelnk/magic",
)


def bundled_rules_text() -> str:
    """Text of the magic rules shipped with the package."""
    return (resources.files("mimeutil.magic") / "data" / "magic.mime").read_text(encoding="latin-1")


def _compile_into(forest: RuleForest, path: Path) -> int:
    before = len(forest)
    try:
        compile_file(path, forest=forest)
    except OSError as e:
        logger.warning(f"Failed to read magic rules: {{'error': {str(e)!r}}}", extra=classification_extra(source=str(path)))
        return 0
    return len(forest) - before


def load_rule_forest(
    rule_files: Sequence[str] = (),
    use_user_rules: bool = True,
    use_system_rules: bool = False,
    system_locations: Sequence[str] = DEFAULT_SYSTEM_LOCATIONS,
) -> RuleForest:
    """Compile every configured rule source into one forest.

    Sources load in precedence order: explicit rule files, the user rules
    file, then system files. When no system file contributes a rule the
    bundled rules are appended instead.
    """
    forest = RuleForest()

    for rule_file in rule_files:
        path = Path(rule_file).expanduser()
        if not path.exists():
            logger.warning("Magic rule file not found", extra=classification_extra(source=str(path)))
            continue
        _compile_into(forest, path)

    if use_user_rules:
        user_path = platformdirs.user_config_path(APP_NAME, appauthor=False) / USER_RULES_FILE
        if user_path.exists():
            logger.debug(f"Loading user magic rules: {{'path': {str(user_path)!r}}}")
            _compile_into(forest, user_path)

    system_rules = 0
    if use_system_rules:
        for location in system_locations:
            for match_path in sorted(glob.glob(str(Path(location).expanduser()))):
                path = Path(match_path)
                if path.is_file():
                    system_rules += _compile_into(forest, path)

    if system_rules == 0:
        compile_rules(bundled_rules_text().splitlines(), source="<bundled magic.mime>", forest=forest)

    logger.info(f"Magic rules loaded: {{'rules': {len(forest)}, 'system_rules': {system_rules}}}")
    return forest


class MagicMimeDetector(MimeDetector):
    """Classifies content by evaluating magic rules against its bytes.

    Paths to directories report ``application/directory``. When no rule
    matches and ``text_fallback`` is set, the leading bytes are checked
    for plain text, which also reports empty content as
    ``application/x-empty``.
    """

    description = "Determine MIME types from file content using Unix magic rules"

    def __init__(
        self,
        rule_files: Sequence[str] = (),
        use_user_rules: bool = True,
        use_system_rules: bool = False,
        system_locations: Sequence[str] = DEFAULT_SYSTEM_LOCATIONS,
        text_fallback: bool = True,
        forest: Optional[RuleForest] = None,
    ) -> None:
        if forest is None:
            forest = load_rule_forest(
                rule_files=rule_files,
                use_user_rules=use_user_rules,
                use_system_rules=use_system_rules,
                system_locations=system_locations,
            )
        self.forest = forest
        self.text_fallback = text_fallback

    def known_mime_types(self) -> List[str]:
        return self.forest.mime_types()

    def _from_path(self, path: Path) -> Iterable[MimeType]:
        if path.is_dir():
            return [MimeType(DIRECTORY_MIME_TYPE)]
        with open(path, "rb") as f:
            return self._classify(StreamSource(f))

    def _from_file(self, handle: BinaryIO) -> Iterable[MimeType]:
        return self._classify(StreamSource(handle))

    def _from_bytes(self, data: bytes) -> Iterable[MimeType]:
        return self._classify(BufferSource(data))

    def _from_stream(self, stream: BinaryIO) -> Iterable[MimeType]:
        return self._classify(StreamSource(stream))

    def _classify(self, source: ByteSource) -> List[MimeType]:
        mime_types: List[MimeType] = []
        for result in match(self.forest, source):
            try:
                if result.encoding:
                    mime_type = TextMimeType(result.mime_type, result.encoding, specificity=result.specificity)
                else:
                    mime_type = MimeType(result.mime_type, specificity=result.specificity)
            except InvalidMimeTypeFormat:
                logger.debug(f"Ignoring malformed type from magic rule: {{'mime_type': {result.mime_type!r}}}")
                continue
            mime_types.append(mime_type)

        if not mime_types and self.text_fallback:
            with source.session():
                fallback = check_for_text_plain(source.read(0, TEXT_SAMPLE_SIZE))
            if fallback is not None:
                mime_types.append(MimeType(fallback))
        return mime_types
