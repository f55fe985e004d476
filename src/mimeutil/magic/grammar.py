"""Compiler for Unix magic(5) style rule sources.

A rule source is plain text. Each top-level line starts a rule group;
lines prefixed with one or more ``>`` are nested tests evaluated only
when their parent matched. A line has the fields::

    [>...]offset  type[&mask][/flags]  [op]value  [mime/type [encoding]]

Groups that fail to parse are logged and skipped so that one bad entry
never prevents the rest of a source from loading.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from ..errors import InvalidMagicEntry
from ..logging import classification_extra

logger = logging.getLogger(__name__)

NATIVE = "native"
BIG = "big"
LITTLE = "little"

# type name -> (kind, width in bytes)
_BASE_TYPES = {
    "byte": ("numeric", 1),
    "short": ("numeric", 2),
    "long": ("numeric", 4),
    "quad": ("numeric", 8),
    "date": ("numeric", 4),
    "ldate": ("numeric", 4),
    "qdate": ("numeric", 8),
    "qldate": ("numeric", 8),
    "string": ("string", 0),
    "pstring": ("pstring", 0),
    "search": ("search", 0),
    "regex": ("regex", 0),
}

# indirect offset size specifier -> (width, byte order)
_INDIRECT_TYPES = {
    "b": (1, LITTLE), "B": (1, BIG), "c": (1, LITTLE), "C": (1, BIG),
    "s": (2, LITTLE), "S": (2, BIG), "h": (2, LITTLE), "H": (2, BIG),
    "l": (4, LITTLE), "L": (4, BIG),
    "q": (8, LITTLE), "Q": (8, BIG),
}

# Leading characters read as an operator, per value kind; any other
# leading character belongs to the operand
_OPERATORS = {
    "numeric": "=!<>&^",
    "string": "=!<>",
    "pstring": "=!<>",
    "search": "=!",
    "regex": "=!",
}
DEFAULT_SEARCH_RANGE = 4096

_INDIRECT_RE = re.compile(
    r"^\((?P<rel>&)?(?P<base>[-+]?(?:0[xX][0-9a-fA-F]+|\d+))"
    r"(?:[.,](?P<type>[bBcCsShHlLqQ]))?"
    r"(?:(?P<sign>[-+])(?P<add>0[xX][0-9a-fA-F]+|\d+))?\)$"
)

_SIMPLE_ESCAPES = {
    "n": 0x0A, "r": 0x0D, "t": 0x09, "b": 0x08, "f": 0x0C,
    "v": 0x0B, "a": 0x07, "\\": 0x5C, " ": 0x20,
}


@dataclass
class OffsetSpec:
    """Where a test reads its value.

    Attributes:
        base: Absolute offset, or displacement when ``relative`` is set
        relative: Offset is added to the end of the parent's match
        indirect: Read a number at ``base`` and use it as the offset
        indirect_width: Width of the number read for an indirect offset
        indirect_order: Byte order of the number read for an indirect offset
        indirect_add: Value added to the number read for an indirect offset
    """
    base: int
    relative: bool = False
    indirect: bool = False
    indirect_width: int = 4
    indirect_order: str = LITTLE
    indirect_add: int = 0


@dataclass
class ValueType:
    """Declared type of a test value."""
    name: str
    kind: str  # numeric, string, pstring, search, regex
    width: int = 0
    byte_order: str = NATIVE
    signed: bool = True
    search_range: int = 0
    case_insensitive: bool = False


@dataclass
class MagicRuleNode:
    """One compiled test line.

    ``parent`` and ``children`` hold node ids within the owning
    RuleForest, never object references.
    """
    id: int
    level: int
    offset: OffsetSpec
    value_type: ValueType
    operator: str
    operand: Union[int, bytes, "re.Pattern[bytes]", None]
    mask: Optional[int] = None
    mime_type: Optional[str] = None
    encoding: Optional[str] = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    source: str = "<string>"
    line_number: int = 0


class RuleForest:
    """Arena of rule nodes; ``roots`` keeps top-level rules in source order."""

    def __init__(self) -> None:
        self.nodes: List[MagicRuleNode] = []
        self.roots: List[int] = []

    def __len__(self) -> int:
        return len(self.roots)

    def node(self, node_id: int) -> MagicRuleNode:
        return self.nodes[node_id]

    def iter_roots(self) -> Iterator[MagicRuleNode]:
        for node_id in self.roots:
            yield self.nodes[node_id]

    def add_group(self, group: List[MagicRuleNode]) -> int:
        """Append a parsed group whose ids and links are group-local.

        Returns:
            Id of the group's root node in this forest
        """
        shift = len(self.nodes)
        for node in group:
            node.id += shift
            if node.parent is not None:
                node.parent += shift
            node.children = [child + shift for child in node.children]
            self.nodes.append(node)
        self.roots.append(group[0].id)
        return group[0].id

    def extend(self, other: "RuleForest") -> None:
        """Append every rule of ``other`` after the rules already held."""
        for root in other.roots:
            group = _collect_subtree(other, root)
            self.add_group(group)

    def mime_types(self) -> List[str]:
        """Every MIME type string any node can emit, in source order."""
        seen: List[str] = []
        for node in self.nodes:
            if node.mime_type and node.mime_type not in seen:
                seen.append(node.mime_type)
        return seen


def _collect_subtree(forest: RuleForest, root_id: int) -> List[MagicRuleNode]:
    """Copy a subtree out of a forest with ids renumbered from zero."""
    order: List[int] = []
    stack = [root_id]
    while stack:
        node_id = stack.pop()
        order.append(node_id)
        stack.extend(reversed(forest.nodes[node_id].children))

    local = {old: new for new, old in enumerate(order)}
    group: List[MagicRuleNode] = []
    for old in order:
        src = forest.nodes[old]
        group.append(MagicRuleNode(
            id=local[old],
            level=src.level,
            offset=src.offset,
            value_type=src.value_type,
            operator=src.operator,
            operand=src.operand,
            mask=src.mask,
            mime_type=src.mime_type,
            encoding=src.encoding,
            parent=local[src.parent] if src.parent is not None and old != root_id else None,
            children=[local[c] for c in src.children],
            source=src.source,
            line_number=src.line_number,
        ))
    return group


def parse_number(text: str) -> int:
    """Parse a decimal, ``0x`` hex or leading-zero octal literal.

    Raises:
        ValueError: If the text is not a number
    """
    text = text.strip()
    sign = 1
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text.endswith(("L", "l")) and len(text) > 1:
        text = text[:-1]
    if not text:
        raise ValueError("empty number")
    if text[:2].lower() == "0x":
        return sign * int(text[2:], 16)
    if len(text) > 1 and text[0] == "0":
        return sign * int(text[1:], 8)
    return sign * int(text, 10)


def unescape(text: str) -> bytes:
    """Decode magic(5) string escapes into raw bytes.

    Characters outside latin-1 are encoded as UTF-8.
    """
    out = bytearray()
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\" or i + 1 >= n:
            out.extend(_char_bytes(ch))
            i += 1
            continue

        nxt = text[i + 1]
        if nxt == "x":
            digits = ""
            j = i + 2
            while j < n and len(digits) < 2 and text[j] in "0123456789abcdefABCDEF":
                digits += text[j]
                j += 1
            if digits:
                out.append(int(digits, 16))
                i = j
            else:
                out.extend(b"x")
                i += 2
            continue
        if nxt in "01234567":
            digits = ""
            j = i + 1
            while j < n and len(digits) < 3 and text[j] in "01234567":
                digits += text[j]
                j += 1
            out.append(int(digits, 8) & 0xFF)
            i = j
            continue
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
        else:
            out.extend(_char_bytes(nxt))
        i += 2
    return bytes(out)


def _char_bytes(ch: str) -> bytes:
    code = ord(ch)
    if code < 256:
        return bytes([code])
    return ch.encode("utf-8")


def split_fields(line: str, count: int) -> Tuple[List[str], str]:
    """Split off ``count`` whitespace-separated fields.

    A backslash-escaped space does not end a field. Returns the fields and
    the unparsed remainder.
    """
    fields: List[str] = []
    i = 0
    n = len(line)
    while len(fields) < count:
        while i < n and line[i] in " \t":
            i += 1
        if i >= n:
            break
        start = i
        while i < n and line[i] not in " \t":
            if line[i] == "\\" and i + 1 < n:
                i += 2
            else:
                i += 1
        fields.append(line[start:i])
    return fields, line[i:].strip()


def parse_offset(text: str) -> OffsetSpec:
    """Parse an offset field: ``N``, ``&N``, ``(N.t+M)`` or ``(&N.t+M)``."""
    text = text.strip()
    if text.startswith("("):
        m = _INDIRECT_RE.match(text)
        if not m:
            raise ValueError(f"bad indirect offset {text!r}")
        width, order = _INDIRECT_TYPES[m.group("type") or "l"]
        add = 0
        if m.group("add"):
            add = parse_number(m.group("add"))
            if m.group("sign") == "-":
                add = -add
        return OffsetSpec(
            base=parse_number(m.group("base")),
            relative=bool(m.group("rel")),
            indirect=True,
            indirect_width=width,
            indirect_order=order,
            indirect_add=add,
        )
    if text.startswith("&"):
        return OffsetSpec(base=parse_number(text[1:]), relative=True)
    return OffsetSpec(base=parse_number(text))


def parse_type(text: str) -> Tuple[ValueType, Optional[int]]:
    """Parse a type field into a ValueType and an optional numeric mask."""
    mask: Optional[int] = None
    flags = ""
    name = text

    if "&" in name:
        name, mask_text = name.split("&", 1)
        mask = parse_number(mask_text)
    if "/" in name:
        name, flags = name.split("/", 1)

    signed = True
    byte_order = NATIVE
    base = name
    if base.startswith("u") and (base[1:] in _BASE_TYPES or base[1:3] in ("be", "le")):
        signed = False
        base = base[1:]
    if base.startswith("be") and base[2:] in _BASE_TYPES:
        byte_order = BIG
        base = base[2:]
    elif base.startswith("le") and base[2:] in _BASE_TYPES:
        byte_order = LITTLE
        base = base[2:]

    if base not in _BASE_TYPES:
        raise ValueError(f"unknown type {text!r}")
    kind, width = _BASE_TYPES[base]

    value_type = ValueType(name=name, kind=kind, width=width, byte_order=byte_order, signed=signed)

    if kind == "numeric":
        if flags:
            raise ValueError(f"flags not allowed on numeric type {text!r}")
        return value_type, mask

    if mask is not None:
        raise ValueError(f"mask not allowed on {base} type {text!r}")

    if kind in ("search", "regex"):
        range_part, _, more_flags = flags.partition("/")
        if range_part.isdigit():
            value_type.search_range = int(range_part)
            flags = more_flags
        else:
            value_type.search_range = DEFAULT_SEARCH_RANGE
    value_type.case_insensitive = "c" in flags
    return value_type, None


def parse_test(value_type: ValueType, text: str) -> Tuple[str, Union[int, bytes, "re.Pattern[bytes]", None]]:
    """Parse the test field into an operator and operand.

    Numeric tests accept ``= ! < > & ^``, string and pstring tests
    ``= ! < >``, search and regex tests only ``=`` and ``!``. A regex such
    as ``^[0-9]+`` therefore keeps its anchor.
    """
    if text == "x":
        return "x", None

    operator = "="
    if text and text[0] in _OPERATORS[value_type.kind]:
        operator = text[0]
        text = text[1:]
    if not text:
        raise ValueError("missing operand")

    if value_type.kind == "numeric":
        return operator, parse_number(text)

    if value_type.kind == "regex":
        flags = re.IGNORECASE if value_type.case_insensitive else 0
        # regex operands keep their own escapes
        try:
            return operator, re.compile(b"".join(_char_bytes(ch) for ch in text), flags)
        except re.error as e:
            raise ValueError(f"bad regex {text!r}: {e}") from e
    return operator, unescape(text)


def parse_message(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Extract ``(mime_type, encoding)`` from the trailing message text."""
    tokens = text.split()
    if not tokens:
        return None, None
    mime_type: Optional[str] = None
    encoding: Optional[str] = None
    for index, token in enumerate(tokens):
        if "/" in token:
            mime_type = token
            rest = tokens[index + 1:]
            if rest:
                encoding = rest[0]
                if encoding.lower().startswith("charset="):
                    encoding = encoding[len("charset="):]
            break
    return mime_type, encoding


def parse_line(line: str, node_id: int, source: str, line_number: int) -> MagicRuleNode:
    """Parse one rule line (leading ``>`` markers included).

    Raises:
        InvalidMagicEntry: If a required field is missing or malformed
    """
    level = len(line) - len(line.lstrip(">"))
    body = line[level:]
    fields, remainder = split_fields(body, 3)
    if len(fields) < 3:
        raise InvalidMagicEntry(
            f"Expected offset, type and test fields: {line!r}",
            source=source, line_number=line_number,
        )

    offset_text, type_text, test_text = fields
    try:
        offset = parse_offset(offset_text)
        value_type, mask = parse_type(type_text)
        operator, operand = parse_test(value_type, test_text)
    except (ValueError, KeyError) as e:
        raise InvalidMagicEntry(
            f"Invalid magic entry: {e}", source=source, line_number=line_number, line=line,
        ) from e

    if level == 0 and offset.relative:
        raise InvalidMagicEntry(
            "Top-level rule cannot use a relative offset", source=source, line_number=line_number,
        )

    mime_type, encoding = parse_message(remainder)
    return MagicRuleNode(
        id=node_id,
        level=level,
        offset=offset,
        value_type=value_type,
        operator=operator,
        operand=operand,
        mask=mask,
        mime_type=mime_type,
        encoding=encoding,
        source=source,
        line_number=line_number,
    )


def parse_group(lines: List[Tuple[int, str]], source: str) -> List[MagicRuleNode]:
    """Build one rule tree from a root line and its continuation lines.

    Each continuation becomes a child of the most recent node with a
    strictly smaller nesting level.
    """
    group: List[MagicRuleNode] = []
    stack: List[MagicRuleNode] = []
    for line_number, line in lines:
        node = parse_line(line, len(group), source, line_number)
        if group and node.level == 0:
            raise InvalidMagicEntry("Second top-level line in group", source=source, line_number=line_number)
        while stack and stack[-1].level >= node.level:
            stack.pop()
        if stack:
            node.parent = stack[-1].id
            stack[-1].children.append(node.id)
        elif group:
            raise InvalidMagicEntry("Continuation line without a parent", source=source, line_number=line_number)
        group.append(node)
        stack.append(node)
    return group


def iter_groups(lines: Iterable[str]) -> Iterator[List[Tuple[int, str]]]:
    """Yield line groups, each a top-level line plus its ``>`` lines.

    Continuation lines that appear before any top-level line are yielded
    as their own group so the caller can reject them.
    """
    group: List[Tuple[int, str]] = []
    for line_number, raw in enumerate(lines, start=1):
        # trailing blanks may belong to an escaped space
        line = raw.rstrip("\r\n").lstrip()
        if not line.strip() or line.startswith("#"):
            continue
        if not line.startswith(">") and group:
            yield group
            group = []
        group.append((line_number, line))
    if group:
        yield group


def compile_rules(lines: Iterable[str], source: str = "<string>", forest: Optional[RuleForest] = None) -> RuleForest:
    """Compile rule text into a RuleForest.

    Args:
        lines: Lines of a magic rule source
        source: Name used in diagnostics
        forest: Existing forest to append to; a new one is created if omitted

    Returns:
        The forest holding every group that parsed
    """
    if forest is None:
        forest = RuleForest()

    loaded = 0
    skipped = 0
    for group_lines in iter_groups(lines):
        if group_lines[0][1].startswith(">"):
            skipped += 1
            logger.warning(
                "Skipping orphan continuation lines",
                extra=classification_extra(source=source, line=group_lines[0][0]),
            )
            continue
        try:
            group = parse_group(group_lines, source)
        except InvalidMagicEntry as e:
            skipped += 1
            logger.warning(
                f"Skipping invalid magic entry: {{'error': {e.message!r}}}",
                extra=classification_extra(source=source, line=e.context.get("line_number", group_lines[0][0])),
            )
            continue
        forest.add_group(group)
        loaded += 1

    logger.debug(f"Compiled magic rules: {{'source': {source!r}, 'loaded': {loaded}, 'skipped': {skipped}}}")
    return forest


def compile_file(path: Union[str, Path], forest: Optional[RuleForest] = None) -> RuleForest:
    """Compile a rule file; bytes are read as latin-1 so any file decodes."""
    path = Path(path)
    with open(path, "r", encoding="latin-1") as f:
        return compile_rules(f, source=str(path), forest=forest)
