"""Detector registry and classification pipeline.

The registry owns the process-wide detector map, the handler chain and
the known-types map. Detector and handler collections are replaced
wholesale under a lock on every change, so classification iterates an
immutable snapshot and never blocks on registration.
"""

import importlib
import logging
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from .config.schema import MimeUtilConfig
from .detectors import BUILTIN_DETECTORS
from .detectors.base import MimeDetector, PathLike
from .detectors.text import decode_sample
from .errors import ClassificationFailure, ConfigurationError, InvalidMimeTypeFormat, MimeError, UnsupportedInput
from .handlers import BUILTIN_HANDLERS, MimeHandler
from .logging import classification_extra
from .magic.matcher import preserved_position
from .mime_type import UNKNOWN_MIME_TYPE, MimeType
from .result_set import MimeTypeSet

logger = logging.getLogger(__name__)

# Bytes of content decoded for handlers
HANDLER_SAMPLE_SIZE = 4096


class MimeDetectorRegistry:
    """Ordered collection of detectors merged into one result set.

    Detectors run in name order. A detector raising UnsupportedInput is
    skipped quietly; one that fails in any other way is logged and
    contributes nothing. Classification never returns an empty set: the
    unknown type is reported when nothing matched.
    """

    def __init__(self, unknown_mime_type: str = UNKNOWN_MIME_TYPE) -> None:
        self._lock = threading.RLock()
        self._detectors: Dict[str, MimeDetector] = {}
        self._handlers: Tuple[MimeHandler, ...] = ()
        self._known: Dict[str, Set[str]] = {}
        self.unknown_mime_type = str(MimeType(unknown_mime_type))

    # Detector management

    def register(self, detector: MimeDetector) -> MimeDetector:
        """Add a detector keyed by its name.

        Returns:
            The registered detector, or the one already registered under
            the same name
        """
        if not isinstance(detector, MimeDetector):
            raise MimeError(
                f"Detectors must subclass MimeDetector, got {type(detector).__name__}",
                detector=repr(detector),
            )
        with self._lock:
            existing = self._detectors.get(detector.name)
            if existing is not None:
                logger.error(f"MimeDetector already registered: {{'name': {detector.name!r}}}")
                return existing
            detectors = dict(self._detectors)
            detectors[detector.name] = detector
            self._detectors = detectors

        for mime_type in detector.known_mime_types():
            self.add_known_mime_type(mime_type)
        logger.info(f"Registered MimeDetector: {{'name': {detector.name!r}}}")
        return detector

    def register_class(self, class_path: str, **options) -> MimeDetector:
        """Import, instantiate and register a detector by dotted class path.

        Nothing is instantiated when the name is already registered.

        Raises:
            ConfigurationError: If the class cannot be imported or built
        """
        existing = self.get_detector(class_path)
        if existing is not None:
            logger.error(f"MimeDetector already registered: {{'name': {class_path!r}}}")
            return existing

        module_name, _, class_name = class_path.rpartition(".")
        if not module_name:
            raise ConfigurationError(f"Not a dotted class path: {class_path!r}", class_path=class_path)
        try:
            module = importlib.import_module(module_name)
            detector_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Cannot load detector {class_path!r}: {e}", class_path=class_path) from e
        if not isinstance(detector_class, type) or not issubclass(detector_class, MimeDetector):
            raise ConfigurationError(f"{class_path!r} is not a MimeDetector", class_path=class_path)

        try:
            detector = detector_class(**options)
        except TypeError as e:
            raise ConfigurationError(f"Cannot create detector {class_path!r}: {e}", class_path=class_path) from e
        return self.register(detector)

    def unregister(self, detector: Union[MimeDetector, str]) -> Optional[MimeDetector]:
        """Remove a detector by instance or name; returns what was removed."""
        name = detector.name if isinstance(detector, MimeDetector) else detector
        with self._lock:
            if name not in self._detectors:
                return None
            detectors = dict(self._detectors)
            removed = detectors.pop(name)
            self._detectors = detectors
        logger.info(f"Unregistered MimeDetector: {{'name': {name!r}}}")
        return removed

    def get_detector(self, name: str) -> Optional[MimeDetector]:
        return self._detectors.get(name)

    def detectors(self) -> List[MimeDetector]:
        """Snapshot of the registered detectors in name order."""
        snapshot = self._detectors
        return [snapshot[name] for name in sorted(snapshot)]

    # Handler chain

    def add_handler(self, handler: MimeHandler) -> None:
        if not isinstance(handler, MimeHandler):
            raise MimeError(f"Handlers must subclass MimeHandler, got {type(handler).__name__}")
        with self._lock:
            self._handlers = self._handlers + (handler,)

    def remove_handler(self, handler: MimeHandler) -> bool:
        with self._lock:
            if handler not in self._handlers:
                return False
            self._handlers = tuple(h for h in self._handlers if h is not handler)
        return True

    def handlers(self) -> List[MimeHandler]:
        return list(self._handlers)

    # Known types

    def add_known_mime_type(self, mime_type: Union[str, MimeType]) -> None:
        """Record a type as seen. Malformed type strings are ignored."""
        try:
            parsed = mime_type if isinstance(mime_type, MimeType) else MimeType(mime_type)
        except InvalidMimeTypeFormat:
            logger.debug(f"Ignoring malformed known type: {{'mime_type': {mime_type!r}}}")
            return
        with self._lock:
            self._known.setdefault(parsed.media_type, set()).add(parsed.sub_type)

    def is_mime_type_known(self, mime_type: Union[str, MimeType]) -> bool:
        try:
            parsed = mime_type if isinstance(mime_type, MimeType) else MimeType(mime_type)
        except InvalidMimeTypeFormat:
            return False
        with self._lock:
            return parsed.sub_type in self._known.get(parsed.media_type, ())

    # Classification

    def classify_path(self, path: PathLike, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
        path = Path(path)

        def load_content() -> bytes:
            if not path.is_file():
                return b""
            with open(path, "rb") as f:
                return f.read(HANDLER_SAMPLE_SIZE)

        return self._classify(lambda d: d.get_mime_types_path(path), load_content, unknown_mime_type, str(path))

    def classify_file(self, handle: BinaryIO, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
        def load_content() -> bytes:
            with preserved_position(handle):
                return handle.read(HANDLER_SAMPLE_SIZE) or b""

        target = str(getattr(handle, "name", repr(handle)))
        with preserved_position(handle):
            return self._classify(lambda d: d.get_mime_types_file(handle), load_content, unknown_mime_type, target)

    def classify_bytes(self, data: bytes, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
        data = bytes(data)
        return self._classify(
            lambda d: d.get_mime_types_bytes(data),
            lambda: data[:HANDLER_SAMPLE_SIZE],
            unknown_mime_type,
            f"<{len(data)} bytes>",
        )

    def classify_stream(self, stream: BinaryIO, unknown_mime_type: Optional[str] = None) -> MimeTypeSet:
        """Classify a seekable stream, restoring its position afterwards.

        Raises:
            UnsupportedInput: If the stream cannot seek
        """
        def load_content() -> bytes:
            with preserved_position(stream):
                return stream.read(HANDLER_SAMPLE_SIZE) or b""

        with preserved_position(stream):
            return self._classify(lambda d: d.get_mime_types_stream(stream), load_content, unknown_mime_type, "<stream>")

    def _classify(
        self,
        call: Callable[[MimeDetector], Iterable[MimeType]],
        load_content: Callable[[], bytes],
        unknown_mime_type: Optional[str],
        target: str,
    ) -> MimeTypeSet:
        result = MimeTypeSet()
        handlers = self._handlers
        fired: Set[int] = set()
        stopped = False
        content: List[bytes] = []

        def sample() -> bytes:
            if not content:
                content.append(load_content())
            return content[0]

        for detector in self.detectors():
            extra = classification_extra(detector=detector.name, target=target)
            try:
                found = call(detector)
            except UnsupportedInput:
                logger.debug("Detector skipped unsupported input", extra=extra)
                continue
            except ClassificationFailure as e:
                logger.warning(f"Detector failed: {{'error': {e.message!r}}}", extra=extra)
                continue
            except Exception as e:
                logger.error(
                    f"Detector raised unexpectedly: {{'error': {str(e)!r}}}",
                    exc_info=True,
                    extra=extra,
                )
                continue

            result.update(found)
            if handlers and not stopped:
                stopped = self._run_handlers(result, handlers, fired, sample)

        if not result:
            result.add(MimeType(unknown_mime_type or self.unknown_mime_type))
            return result

        for mime_type in result:
            self.add_known_mime_type(mime_type)
        return result

    def _run_handlers(
        self,
        result: MimeTypeSet,
        handlers: Tuple[MimeHandler, ...],
        fired: Set[int],
        sample: Callable[[], bytes],
    ) -> bool:
        """Fire handlers whose interest is now present. Returns True to stop."""
        for index, handler in enumerate(handlers):
            if index in fired:
                continue
            mime_type = next((m for m in result.text_mime_types() if handler.is_interested(m)), None)
            if mime_type is None:
                continue
            fired.add(index)
            stop = handler.handle(mime_type, decode_sample(sample(), mime_type.encoding))
            result.rekey()
            logger.debug(f"Handler fired: {{'handler': {handler.name!r}, 'mime_type': {str(mime_type)!r}, 'stop': {bool(stop)}}}")
            if stop:
                return True
        return False


def get_most_specific_mime_type(mime_types: Iterable[MimeType]) -> Optional[MimeType]:
    """Entry with the highest specificity; the first one wins ties."""
    if isinstance(mime_types, MimeTypeSet):
        return mime_types.most_specific()
    best: Optional[MimeType] = None
    for mime_type in mime_types:
        if best is None or mime_type.specificity > best.specificity:
            best = mime_type
    return best


def _detector_options(name: str, config: MimeUtilConfig) -> Dict[str, object]:
    if name == "magic":
        return {
            "rule_files": list(config.magic.rule_files),
            "use_user_rules": config.magic.use_user_rules,
            "use_system_rules": config.magic.use_system_rules,
            "system_locations": list(config.magic.system_locations),
            "text_fallback": config.magic.text_fallback,
        }
    if name == "extension":
        return {
            "mappings_files": list(config.extension.mappings_files),
            "use_system_types": config.extension.use_system_types,
            "use_user_mappings": config.extension.use_user_mappings,
        }
    if name == "glob":
        return {"globs_files": list(config.glob.globs_files) or None}
    if name == "text":
        return {"sample_size": config.text.sample_size, "threshold": config.text.threshold}
    return {}


def create_registry(config: Optional[MimeUtilConfig] = None) -> MimeDetectorRegistry:
    """Build a registry seeded with the detectors named in ``config``."""
    if config is None:
        config = MimeUtilConfig()
    registry = MimeDetectorRegistry(unknown_mime_type=config.detection.unknown_mime_type)
    for name in config.detection.detectors:
        class_path = BUILTIN_DETECTORS.get(name, name)
        registry.register_class(class_path, **_detector_options(name, config))
    for name in config.detection.handlers:
        registry.add_handler(_load_handler(BUILTIN_HANDLERS.get(name, name)))
    return registry


def _load_handler(class_path: str) -> MimeHandler:
    module_name, _, class_name = class_path.rpartition(".")
    try:
        handler_class = getattr(importlib.import_module(module_name), class_name)
    except (ValueError, ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load handler {class_path!r}: {e}", class_path=class_path) from e
    if not isinstance(handler_class, type) or not issubclass(handler_class, MimeHandler):
        raise ConfigurationError(f"{class_path!r} is not a MimeHandler", class_path=class_path)
    return handler_class()


_default_registry: Optional[MimeDetectorRegistry] = None
_default_lock = threading.Lock()


def get_registry() -> MimeDetectorRegistry:
    """Process-wide registry, created from the loaded configuration on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                from .config.loader import get_config

                _default_registry = create_registry(get_config())
    return _default_registry


def set_registry(registry: Optional[MimeDetectorRegistry]) -> None:
    """Replace the process-wide registry; None rebuilds it on next use."""
    global _default_registry
    with _default_lock:
        _default_registry = registry
