"""Tests for the magic rule compiler."""

import logging
import re

import pytest

from mimeutil.errors import InvalidMagicEntry
from mimeutil.magic.grammar import (
    BIG,
    DEFAULT_SEARCH_RANGE,
    LITTLE,
    NATIVE,
    RuleForest,
    compile_file,
    compile_rules,
    parse_line,
    parse_number,
    parse_offset,
    parse_type,
    split_fields,
    unescape,
)
from mimeutil.magic.matcher import BufferSource, match


class TestParseNumber:
    """Tests for numeric literals."""

    @pytest.mark.parametrize("text,expected", [
        ("42", 42),
        ("0x1F", 31),
        ("0X1f", 31),
        ("017", 15),
        ("0", 0),
        ("-3", -3),
        ("+7", 7),
        ("100L", 100),
    ])
    def test_literals(self, text, expected):
        """Test decimal, hex, octal, sign and long suffix."""
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", ["", "-", "abc", "0xzz"])
    def test_rejects_garbage(self, text):
        """Test that non-numbers raise ValueError."""
        with pytest.raises(ValueError):
            parse_number(text)


class TestUnescape:
    """Tests for string escapes."""

    def test_hex_octal_and_simple_escapes(self):
        """Test the supported escape forms."""
        assert unescape(r"\x89PNG\r\n\032\n") == b"\x89PNG\r\n\x1a\n"
        assert unescape(r"a\ b\\c\t") == b"a b\\c\t"

    def test_unknown_escape_is_literal(self):
        """Test that an unknown escape yields the character itself."""
        assert unescape(r"\<html") == b"<html"

    def test_trailing_backslash_kept(self):
        """Test that a lone trailing backslash is kept as is."""
        assert unescape("abc\\") == b"abc\\"

    def test_non_latin1_encoded_as_utf8(self):
        """Test that characters beyond latin-1 become UTF-8 bytes."""
        assert unescape("€") == "€".encode("utf-8")


class TestSplitFields:
    """Tests for whitespace field splitting."""

    def test_escaped_space_stays_in_field(self):
        """Test that '\\ ' does not end a field."""
        fields, rest = split_fields(r"0	string	gimp\ xcf	image/x-xcf", 3)
        assert fields == ["0", "string", r"gimp\ xcf"]
        assert rest == "image/x-xcf"

    def test_short_line(self):
        """Test that missing fields are simply absent."""
        fields, rest = split_fields("0 string", 3)
        assert fields == ["0", "string"]
        assert rest == ""


class TestParseOffset:
    """Tests for offset fields."""

    def test_absolute(self):
        """Test a plain offset."""
        spec = parse_offset("257")
        assert spec.base == 257
        assert not spec.relative and not spec.indirect

    def test_relative(self):
        """Test an '&' offset."""
        spec = parse_offset("&4")
        assert spec.base == 4 and spec.relative

    def test_indirect(self):
        """Test an indirect offset with size and adjustment."""
        spec = parse_offset("(0x3c.l+4)")
        assert spec.indirect
        assert spec.base == 0x3C
        assert spec.indirect_width == 4
        assert spec.indirect_order == LITTLE
        assert spec.indirect_add == 4

    def test_indirect_big_endian_short(self):
        """Test an indirect offset read as a big-endian short with a negative adjustment."""
        spec = parse_offset("(8.S-2)")
        assert spec.indirect_width == 2
        assert spec.indirect_order == BIG
        assert spec.indirect_add == -2

    def test_bad_indirect(self):
        """Test that malformed indirect offsets raise ValueError."""
        with pytest.raises(ValueError):
            parse_offset("(0x3c.z)")


class TestParseType:
    """Tests for type fields."""

    def test_endianness_and_sign(self):
        """Test be/le/u prefixes."""
        value_type, mask = parse_type("ubelong")
        assert value_type.kind == "numeric"
        assert value_type.width == 4
        assert value_type.byte_order == BIG
        assert not value_type.signed
        assert mask is None

        value_type, _ = parse_type("leshort")
        assert value_type.byte_order == LITTLE and value_type.width == 2

        value_type, _ = parse_type("byte")
        assert value_type.byte_order == NATIVE and value_type.signed

    def test_mask(self):
        """Test a numeric mask."""
        value_type, mask = parse_type("beshort&0xfffe")
        assert value_type.width == 2
        assert mask == 0xFFFE

    def test_search_range_and_flags(self):
        """Test search ranges and the case-insensitive flag."""
        value_type, _ = parse_type("search/64")
        assert value_type.kind == "search" and value_type.search_range == 64

        value_type, _ = parse_type("search")
        assert value_type.search_range == DEFAULT_SEARCH_RANGE

        value_type, _ = parse_type("string/c")
        assert value_type.kind == "string" and value_type.case_insensitive

    @pytest.mark.parametrize("text", ["float", "belongish", "string&0xff", "byte/c"])
    def test_rejects_unsupported(self, text):
        """Test that unknown types and misplaced masks or flags raise ValueError."""
        with pytest.raises(ValueError):
            parse_type(text)


class TestParseLine:
    """Tests for whole rule lines."""

    def test_top_level_line(self):
        """Test a line with a type and encoding message."""
        node = parse_line(r"0	string	\357\273\277	text/plain	UTF-8", 0, "<test>", 1)
        assert node.level == 0
        assert node.operand == b"\xef\xbb\xbf"
        assert node.mime_type == "text/plain"
        assert node.encoding == "UTF-8"

    def test_continuation_level(self):
        """Test that '>' markers set the nesting level."""
        node = parse_line(">>12	string	IHDR	image/png", 0, "<test>", 1)
        assert node.level == 2

    def test_operator(self):
        """Test operators on numeric tests."""
        node = parse_line("0	byte	>10", 0, "<test>", 1)
        assert node.operator == ">"
        assert node.operand == 10
        assert node.mime_type is None

    def test_any_value(self):
        """Test the 'x' test that matches anything."""
        node = parse_line("0	long	x	application/x-any", 0, "<test>", 1)
        assert node.operator == "x" and node.operand is None

    def test_charset_prefix_stripped(self):
        """Test that 'charset=' before the encoding is dropped."""
        node = parse_line("0	string	abc	text/plain	charset=ISO-8859-1", 0, "<test>", 1)
        assert node.encoding == "ISO-8859-1"

    def test_regex_operand(self):
        """Test that regex operands are compiled with their own escapes."""
        node = parse_line(r"0	regex	^[0-9]+\.txt	text/plain", 0, "<test>", 1)
        assert isinstance(node.operand, re.Pattern)
        assert node.operand.search(b"123.txt")
        assert not node.operand.search(b"123xtxt")

    def test_regex_negation_keeps_anchor(self):
        """Test that only '!' is read as an operator before a regex."""
        node = parse_line("0	regex	!^abc	text/plain", 0, "<test>", 1)
        assert node.operator == "!"
        assert node.operand.pattern == b"^abc"

    @pytest.mark.parametrize("line,operator,operand", [
        ("0	string	&amp	text/x-entity", "=", b"&amp"),
        ("0	string	^caret	text/x-caret", "=", b"^caret"),
        ("0	string	>abc	text/x-greater", ">", b"abc"),
        ("0	search/64	<svg	image/svg+xml", "=", b"<svg"),
        ("0	search/64	>x	text/x-gt", "=", b">x"),
        ("0	search/64	!<svg	text/x-none", "!", b"<svg"),
    ])
    def test_operator_set_depends_on_kind(self, line, operator, operand):
        """Test which leading characters are operators for string and search tests."""
        node = parse_line(line, 0, "<test>", 1)
        assert node.operator == operator
        assert node.operand == operand

    def test_numeric_bitwise_operators(self):
        """Test that '&' and '^' stay operators for numeric tests."""
        assert parse_line("0	byte	&0x80	a/b", 0, "<test>", 1).operator == "&"
        assert parse_line("0	byte	^0x80	a/b", 0, "<test>", 1).operator == "^"

    def test_search_angle_bracket_is_literal(self):
        """Test that a search for '<svg' matches the text, not a comparison."""
        forest = compile_rules(["0\tsearch/64\t<svg\timage/svg+xml"])
        assert [r.mime_type for r in match(forest, BufferSource(b"<?xml version=\"1.0\"?><svg/>"))] == ["image/svg+xml"]
        assert [r.mime_type for r in match(forest, BufferSource(b"<html><body>"))] == []

    @pytest.mark.parametrize("line", [
        "0	string",
        "zz	string	abc",
        "0	float	1.0",
        "&2	string	abc",
        "0	regex	[abc",
        "0	string	=",
    ])
    def test_invalid_lines(self, line):
        """Test that malformed lines raise InvalidMagicEntry."""
        with pytest.raises(InvalidMagicEntry):
            parse_line(line, 0, "<test>", 7)


class TestCompileRules:
    """Tests for compiling whole sources."""

    SOURCE = [
        "# comment",
        "",
        "0	beshort	0x8950	image/png",
        ">2	string	NG	image/png",
        ">>12	string	IHDR	image/png",
        ">2	string	XX	image/x-other",
        "0	string	GIF8	image/gif",
    ]

    def test_builds_tree(self):
        """Test that continuation lines hang off the right parents."""
        forest = compile_rules(self.SOURCE, source="<test>")
        assert len(forest) == 2
        png = forest.node(forest.roots[0])
        assert len(png.children) == 2
        first = forest.node(png.children[0])
        assert first.parent == png.id
        assert len(first.children) == 1
        assert forest.node(first.children[0]).value_type.kind == "string"

    def test_mime_types_in_source_order(self):
        """Test the list of types a forest can emit."""
        forest = compile_rules(self.SOURCE)
        assert forest.mime_types() == ["image/png", "image/x-other", "image/gif"]

    def test_bad_group_skipped(self, caplog):
        """Test that an invalid group is logged and later groups still load."""
        lines = [
            "0	string	GOOD1	application/x-good1",
            "0	nonsense	BAD	application/x-bad",
            ">4	string	child	application/x-bad",
            "0	string	GOOD2	application/x-good2",
        ]
        with caplog.at_level(logging.WARNING, logger="mimeutil.magic.grammar"):
            forest = compile_rules(lines, source="<test>")
        assert forest.mime_types() == ["application/x-good1", "application/x-good2"]
        assert "Skipping invalid magic entry" in caplog.text

    def test_bad_offset_group_skipped(self, caplog):
        """Test that a group with an unparseable offset does not stop later groups matching."""
        lines = [
            "zz	string	A	a/a",
            ">1	string	B	a/b",
            "0	string	GOOD	application/x-good",
        ]
        with caplog.at_level(logging.WARNING, logger="mimeutil.magic.grammar"):
            forest = compile_rules(lines, source="<test>")
        assert len(forest) == 1
        assert caplog.records[0].extra_fields == {"source": "<test>", "line": 1}
        results = match(forest, BufferSource(b"GOOD data"))
        assert [r.mime_type for r in results] == ["application/x-good"]

    def test_orphan_continuation_skipped(self):
        """Test that '>' lines before any top-level line are dropped."""
        forest = compile_rules([">0	string	A	a/a", "0	string	B	b/b"])
        assert forest.mime_types() == ["b/b"]

    def test_appends_to_existing_forest(self):
        """Test that compile_rules keeps ids consistent when appending."""
        forest = RuleForest()
        compile_rules(["0	string	A	a/a", ">1	string	B	a/b"], forest=forest)
        compile_rules(["0	string	C	c/c", ">1	string	D	c/d"], forest=forest)
        assert len(forest) == 2
        second = forest.node(forest.roots[1])
        child = forest.node(second.children[0])
        assert child.parent == second.id
        assert child.mime_type == "c/d"

    def test_extend(self):
        """Test merging one forest into another."""
        first = compile_rules(["0	string	A	a/a"])
        second = compile_rules(["0	string	B	b/b", ">1	string	C	b/c"])
        first.extend(second)
        assert len(first) == 2
        root = first.node(first.roots[1])
        assert first.node(root.children[0]).parent == root.id

    def test_compile_file(self, tmp_path):
        """Test compiling rules from a file on disk."""
        rules = tmp_path / "magic.mime"
        rules.write_bytes(b"0\tstring\t\\xfe\\xff\tapplication/x-test\n")
        forest = compile_file(rules)
        assert forest.mime_types() == ["application/x-test"]
        assert forest.node(forest.roots[0]).source == str(rules)
