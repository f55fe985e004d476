"""Evaluate compiled magic rules against bytes, files and streams."""

import logging
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List, Optional, Tuple

from ..errors import UnsupportedInput
from .grammar import NATIVE, MagicRuleNode, RuleForest

logger = logging.getLogger(__name__)

TEXT_SAMPLE_SIZE = 1024
EMPTY_MIME_TYPE = "application/x-empty"
TEXT_PLAIN_MIME_TYPE = "text/plain"

# Sampled bytes outside [_TEXT_LOW, _TEXT_HIGH] make the text check inconclusive
_TEXT_LOW = 9
_TEXT_HIGH = 175


@dataclass
class MatchResult:
    """Outcome of one top-level rule that matched.

    Attributes:
        mime_type: Type string of the deepest matched node that declares one
        specificity: 1 plus the matched descendants along the deepest chain
        encoding: Encoding declared next to ``mime_type``, if any
        rule_id: Id of the top-level rule in its forest
    """
    mime_type: str
    specificity: int
    encoding: Optional[str] = None
    rule_id: int = 0


@contextmanager
def preserved_position(stream: BinaryIO) -> Iterator[BinaryIO]:
    """Restore ``stream``'s read position on every exit path.

    Raises:
        UnsupportedInput: If the stream cannot seek
    """
    if not _is_seekable(stream):
        raise UnsupportedInput("Stream must support seek() and tell()", stream=repr(stream))
    position = stream.tell()
    try:
        yield stream
    finally:
        stream.seek(position)


def _is_seekable(stream: BinaryIO) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return hasattr(stream, "seek") and hasattr(stream, "tell")
    try:
        return bool(seekable())
    except ValueError:
        # closed file
        return False


class ByteSource(ABC):
    """Random access window over the data being classified."""

    @abstractmethod
    def read(self, offset: int, length: int) -> bytes:
        """Up to ``length`` bytes at ``offset``; shorter near the end."""

    @contextmanager
    def session(self) -> Iterator["ByteSource"]:
        yield self


class BufferSource(ByteSource):
    """In-memory bytes; reading never moves any cursor."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    def read(self, offset: int, length: int) -> bytes:
        if offset < 0 or length <= 0:
            return b""
        return self.data[offset:offset + length]


class StreamSource(ByteSource):
    """A seekable binary stream.

    Offset 0 is the stream position when the source was created, and the
    position is restored after every matching session.
    """

    def __init__(self, stream: BinaryIO) -> None:
        if not _is_seekable(stream):
            raise UnsupportedInput("Stream must support seek() and tell()", stream=repr(stream))
        self.stream = stream
        self.start = stream.tell()

    def read(self, offset: int, length: int) -> bytes:
        if offset < 0 or length <= 0:
            return b""
        self.stream.seek(self.start + offset)
        data = self.stream.read(length)
        return data or b""

    @contextmanager
    def session(self) -> Iterator["StreamSource"]:
        with preserved_position(self.stream):
            yield self


def _byte_order(order: str) -> str:
    return sys.byteorder if order == NATIVE else order


def _to_signed(value: int, width: int) -> int:
    bits = width * 8
    value &= (1 << bits) - 1
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _resolve_offset(node: MagicRuleNode, source: ByteSource, parent_end: int) -> Optional[int]:
    spec = node.offset
    offset = spec.base + parent_end if spec.relative else spec.base
    if spec.indirect:
        raw = source.read(offset, spec.indirect_width)
        if len(raw) < spec.indirect_width:
            return None
        offset = int.from_bytes(raw, spec.indirect_order, signed=False) + spec.indirect_add
    if offset < 0:
        return None
    return offset


def _compare_numeric(node: MagicRuleNode, raw: bytes) -> bool:
    vt = node.value_type
    width_mask = (1 << (vt.width * 8)) - 1
    value = int.from_bytes(raw, _byte_order(vt.byte_order), signed=False)
    if node.mask is not None:
        value &= node.mask & width_mask

    op = node.operator
    if op == "x":
        return True
    operand = node.operand & width_mask
    if op == "=":
        return value == operand
    if op == "!":
        return value != operand
    if op == "&":
        return value & operand == operand
    if op == "^":
        return value & operand == 0

    if vt.signed:
        left, right = _to_signed(value, vt.width), _to_signed(operand, vt.width)
    else:
        left, right = value, operand
    if op == ">":
        return left > right
    if op == "<":
        return left < right
    return False


def _compare_bytes(op: str, window: bytes, operand: bytes) -> bool:
    if op == "x":
        return True
    if op == "=":
        return window == operand
    if op == "!":
        return window != operand
    if op == ">":
        return window > operand
    if op == "<":
        return window < operand
    return False


def _fold(data: bytes, case_insensitive: bool) -> bytes:
    return data.lower() if case_insensitive else data


def evaluate(node: MagicRuleNode, source: ByteSource, parent_end: int = 0) -> Optional[int]:
    """Run one node's test.

    Returns:
        Offset just past the matched value, or None if the test failed
    """
    offset = _resolve_offset(node, source, parent_end)
    if offset is None:
        return None
    vt = node.value_type

    if vt.kind == "numeric":
        raw = source.read(offset, vt.width)
        if len(raw) < vt.width:
            return None
        return offset + vt.width if _compare_numeric(node, raw) else None

    if vt.kind == "string":
        if node.operand is None:
            return offset
        operand = node.operand
        window = source.read(offset, len(operand))
        if len(window) < len(operand) and node.operator == "=":
            return None
        matched = _compare_bytes(
            node.operator, _fold(window, vt.case_insensitive), _fold(operand, vt.case_insensitive)
        )
        return offset + len(operand) if matched else None

    if vt.kind == "pstring":
        head = source.read(offset, 1)
        if not head:
            return None
        content = source.read(offset + 1, head[0])
        if node.operand is None:
            return offset + 1 + len(content)
        window = content[:len(node.operand)]
        matched = _compare_bytes(
            node.operator, _fold(window, vt.case_insensitive), _fold(node.operand, vt.case_insensitive)
        )
        return offset + 1 + len(content) if matched else None

    if vt.kind == "search":
        if node.operand is None:
            return offset
        operand = _fold(node.operand, vt.case_insensitive)
        window = _fold(source.read(offset, vt.search_range + len(operand)), vt.case_insensitive)
        index = window.find(operand)
        if node.operator == "!":
            return offset if index < 0 else None
        return offset + index + len(operand) if index >= 0 else None

    if vt.kind == "regex":
        if node.operand is None:
            return offset
        window = source.read(offset, vt.search_range)
        found = node.operand.search(window)
        if node.operator == "!":
            return offset if found is None else None
        return offset + found.end() if found else None

    return None


def match_rule(forest: RuleForest, root_id: int, source: ByteSource) -> Optional[MatchResult]:
    """Evaluate one top-level rule and its nested tests.

    Traversal uses an explicit stack. Among matched nodes the deepest one
    decides the result; the first such node in source order wins ties.
    The emitted type is the last type declared along that node's chain.
    """
    root = forest.nodes[root_id]
    root_end = evaluate(root, source, 0)
    if root_end is None:
        return None

    best: Tuple[int, Optional[str], Optional[str]] = (1, root.mime_type, root.encoding)
    # (node id, depth, parent end offset, chain type, chain encoding)
    stack: List[Tuple[int, int, int, Optional[str], Optional[str]]] = []
    for child in reversed(root.children):
        stack.append((child, 2, root_end, root.mime_type, root.encoding))

    while stack:
        node_id, depth, parent_end, chain_type, chain_encoding = stack.pop()
        node = forest.nodes[node_id]
        end = evaluate(node, source, parent_end)
        if end is None:
            continue
        if node.mime_type:
            chain_type, chain_encoding = node.mime_type, node.encoding
        if depth > best[0] and chain_type:
            best = (depth, chain_type, chain_encoding)
        for child in reversed(node.children):
            stack.append((child, depth + 1, end, chain_type, chain_encoding))

    specificity, mime_type, encoding = best
    if not mime_type:
        return None
    return MatchResult(mime_type=mime_type, specificity=specificity, encoding=encoding, rule_id=root_id)


def match(forest: RuleForest, source: ByteSource) -> List[MatchResult]:
    """Evaluate every top-level rule; each one that matches yields a result."""
    results: List[MatchResult] = []
    with source.session():
        for root_id in forest.roots:
            result = match_rule(forest, root_id, source)
            if result is not None:
                results.append(result)
    logger.debug(f"Magic match finished: {{'rules': {len(forest.roots)}, 'matches': {len(results)}}}")
    return results


def most_specific_match(results: List[MatchResult]) -> Optional[MatchResult]:
    """Highest specificity; the earliest in source order wins ties."""
    best: Optional[MatchResult] = None
    for result in results:
        if best is None or result.specificity > best.specificity:
            best = result
    return best


def check_for_text_plain(sample: bytes) -> Optional[str]:
    """Classify the first bytes of content as empty, plain text or unknown.

    Returns:
        ``application/x-empty`` for no bytes, ``text/plain`` when every
        sampled byte is in the accepted range, else None
    """
    window = sample[:TEXT_SAMPLE_SIZE]
    if not window:
        return EMPTY_MIME_TYPE
    for byte in window:
        if byte < _TEXT_LOW or byte > _TEXT_HIGH:
            return None
    return TEXT_PLAIN_MIME_TYPE
