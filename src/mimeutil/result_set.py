"""Specificity-aware set of MimeType instances."""

from collections.abc import MutableSet
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import InvalidMimeTypeFormat
from .mime_type import MimeType, TextMimeType

MimeTypeLike = Union[MimeType, str, Iterable[str]]


def _to_mime_types(value: Any) -> List[MimeType]:
    """Expand a MimeType, a comma-separated string or a list of strings."""
    if isinstance(value, MimeType):
        return [value]
    if isinstance(value, str):
        return [MimeType(part.strip()) for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        result: List[MimeType] = []
        for item in value:
            result.extend(_to_mime_types(item))
        return result
    raise TypeError(f"Cannot interpret {type(value).__name__} as MIME types")


class MimeTypeSet(MutableSet):
    """Set of MIME types where adding a duplicate raises its specificity.

    Entries are stored as copies keyed by (media, sub) and iterate in
    insertion order. Adding a type that is already present adds the
    incoming specificity (at least 1) to the stored one instead of being
    rejected, so two detectors agreeing on ``text/plain`` yield a single
    entry with specificity 2.
    """

    def __init__(self, values: Optional[Iterable[Any]] = None) -> None:
        self._entries: Dict[Tuple[str, str], MimeType] = {}
        if values is not None:
            if isinstance(values, (str, MimeType)):
                self.add(values)
            else:
                self.update(values)

    def add(self, value: MimeTypeLike) -> None:
        for mime_type in _to_mime_types(value):
            self._add_one(mime_type)

    def _add_one(self, mime_type: MimeType) -> None:
        weight = max(1, mime_type.specificity)
        stored = self._entries.get(mime_type.key)
        if stored is None:
            entry = mime_type.copy()
            entry.specificity = weight
            self._entries[mime_type.key] = entry
            return

        if isinstance(mime_type, TextMimeType) and not isinstance(stored, TextMimeType):
            upgraded = mime_type.copy()
            upgraded.specificity = stored.specificity
            self._entries[mime_type.key] = upgraded
            stored = upgraded
        stored.specificity += weight

    def update(self, *others: Iterable[Any]) -> None:
        for other in others:
            if isinstance(other, (str, MimeType)):
                self.add(other)
                continue
            for value in other:
                self.add(value)

    def discard(self, value: Any) -> None:
        try:
            mime_types = _to_mime_types(value)
        except (TypeError, InvalidMimeTypeFormat):
            return
        for mime_type in mime_types:
            self._entries.pop(mime_type.key, None)

    def get(self, value: Union[MimeType, str]) -> Optional[MimeType]:
        """Stored instance equal to ``value``, carrying its specificity."""
        key = value.key if isinstance(value, MimeType) else MimeType(value).key
        return self._entries.get(key)

    def __contains__(self, value: Any) -> bool:
        try:
            mime_types = _to_mime_types(value)
        except (TypeError, InvalidMimeTypeFormat):
            return False
        if not mime_types:
            return False
        return all(mime_type.key in self._entries for mime_type in mime_types)

    def __iter__(self) -> Iterator[MimeType]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, (MimeType, str)):
            try:
                other = _to_mime_types(other)
            except InvalidMimeTypeFormat:
                return False
        try:
            iter(other)
        except TypeError:
            return NotImplemented
        other_set = MimeTypeSet(other) if not isinstance(other, MimeTypeSet) else other
        if len(self) != len(other_set):
            return False
        return all(m in other_set for m in self) and all(m in self for m in other_set)

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return ",".join(str(mime_type) for mime_type in self._entries.values())

    def __repr__(self) -> str:
        return f"MimeTypeSet([{', '.join(repr(m) for m in self._entries.values())}])"

    @classmethod
    def _from_iterable(cls, it: Iterable[Any]) -> "MimeTypeSet":
        return cls(it)

    def most_specific(self) -> Optional[MimeType]:
        """Entry with the highest specificity; the earliest inserted wins ties."""
        best: Optional[MimeType] = None
        for mime_type in self._entries.values():
            if best is None or mime_type.specificity > best.specificity:
                best = mime_type
        return best

    def rekey(self) -> None:
        """Re-index entries whose type was rewritten in place.

        Entries that now collide are merged, adding their specificities.
        """
        entries = list(self._entries.values())
        self._entries = {}
        for entry in entries:
            stored = self._entries.get(entry.key)
            if stored is None:
                self._entries[entry.key] = entry
            elif isinstance(entry, TextMimeType) and not isinstance(stored, TextMimeType):
                entry.specificity += stored.specificity
                self._entries[entry.key] = entry
            else:
                stored.specificity += entry.specificity

    def text_mime_types(self) -> List[TextMimeType]:
        return [m for m in self._entries.values() if isinstance(m, TextMimeType)]
