"""Tests for MimeType, TextMimeType and the string helpers."""

import sys

import pytest

from mimeutil.errors import InvalidMimeTypeFormat, MimeError
from mimeutil.mime_type import (
    MimeType,
    TextMimeType,
    add_known_encoding,
    get_extension,
    get_first_mime_type,
    get_known_encodings,
    get_media_type,
    get_native_byte_order,
    get_sub_type,
    is_known_encoding,
    is_text_mime_type,
    parse_mime_type,
)


class TestParseMimeType:
    """Tests for parse_mime_type."""

    def test_splits_media_and_sub_type(self):
        """Test that a plain type splits on the slash."""
        assert parse_mime_type("text/plain") == ("text", "plain")

    def test_drops_parameters(self):
        """Test that parameters after ';' are ignored."""
        assert parse_mime_type("text/html; charset=UTF-8") == ("text", "html")

    @pytest.mark.parametrize("value", ["texthtml", "vnd.ms-cab-compressed", "*", "texthtml;q=0.5"])
    def test_rejects_missing_separator(self, value):
        """Test that a type without a slash is rejected."""
        with pytest.raises(InvalidMimeTypeFormat):
            parse_mime_type(value)
        with pytest.raises(InvalidMimeTypeFormat):
            MimeType(value)

    @pytest.mark.parametrize("value", ["", "   ", None, "/plain", "text/", "te xt/plain", "text/plain,text/html"])
    def test_rejects_malformed(self, value):
        """Test that blank or malformed strings raise InvalidMimeTypeFormat."""
        with pytest.raises(InvalidMimeTypeFormat):
            parse_mime_type(value)


class TestMimeType:
    """Tests for MimeType value semantics."""

    def test_round_trip(self):
        """Test that media and sub type compose back into the string form."""
        mime_type = MimeType("application/xml")
        assert mime_type.media_type == "application"
        assert mime_type.sub_type == "xml"
        assert str(mime_type) == "application/xml"

    def test_equality_ignores_specificity(self):
        """Test that equality and hashing use only the two tokens."""
        a = MimeType("image/png", specificity=1)
        b = MimeType("image/png", specificity=5)
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_equality_against_strings(self):
        """Test comparison with type strings, including parameters."""
        assert MimeType("text/xml") == "text/xml"
        assert MimeType("text/xml") == "text/xml;q=0.5"
        assert MimeType("text/xml") != "text/html"
        assert MimeType("text/xml") != "not a type"

    def test_copy_constructor_keeps_specificity(self):
        """Test building a MimeType from another one."""
        original = MimeType("text/plain", specificity=3)
        clone = MimeType(original)
        assert clone == original
        assert clone.specificity == 3

    def test_negative_specificity_rejected(self):
        """Test that a negative specificity raises MimeError."""
        with pytest.raises(MimeError):
            MimeType("text/plain", specificity=-1)

    def test_tokens_are_read_only(self):
        """Test that media_type cannot be reassigned."""
        mime_type = MimeType("text/plain")
        with pytest.raises(AttributeError):
            mime_type.media_type = "image"


class TestTextMimeType:
    """Tests for TextMimeType encodings."""

    def test_default_encoding_is_utf8(self):
        """Test that no encoding means UTF-8."""
        assert TextMimeType("text/plain").encoding == "UTF-8"

    def test_unknown_encoding_falls_back(self):
        """Test that the constructor silently falls back to UTF-8."""
        assert TextMimeType("text/plain", "klingon-8").encoding == "UTF-8"

    def test_encoding_is_canonicalised(self):
        """Test that encoding lookup ignores case."""
        assert TextMimeType("text/plain", "utf-16le").encoding == "UTF-16LE"

    def test_set_encoding_rejects_unknown(self):
        """Test that set_encoding raises for unknown encodings."""
        mime_type = TextMimeType("text/plain")
        with pytest.raises(MimeError):
            mime_type.set_encoding("klingon-8")
        assert mime_type.encoding == "UTF-8"

    def test_set_mime_type_rewrites_in_place(self):
        """Test that handlers can rewrite the type tokens."""
        mime_type = TextMimeType("text/plain", "ISO-8859-1")
        mime_type.set_mime_type("text/xml")
        assert mime_type == "text/xml"
        assert mime_type.encoding == "ISO-8859-1"

    def test_equal_to_plain_mime_type(self):
        """Test that the encoding does not take part in equality."""
        assert TextMimeType("text/plain", "UTF-16BE") == MimeType("text/plain")

    def test_copy_keeps_encoding(self):
        """Test that copy() returns a TextMimeType with the same encoding."""
        clone = TextMimeType("text/plain", "windows-1252", specificity=2).copy()
        assert isinstance(clone, TextMimeType)
        assert clone.encoding == "windows-1252"
        assert clone.specificity == 2

    def test_add_known_encoding(self):
        """Test that registering an encoding makes it acceptable."""
        assert not is_known_encoding("x-test-encoding")
        add_known_encoding("x-test-encoding")
        assert is_known_encoding("X-TEST-ENCODING")
        assert "x-test-encoding" in get_known_encodings()
        assert TextMimeType("text/plain", "x-test-encoding").encoding == "x-test-encoding"


class TestHelpers:
    """Tests for module-level string helpers."""

    def test_media_and_sub_type(self):
        """Test get_media_type and get_sub_type."""
        assert get_media_type("image/svg+xml") == "image"
        assert get_sub_type("image/svg+xml") == "svg+xml"

    def test_get_first_mime_type(self):
        """Test picking the first entry of a list."""
        assert get_first_mime_type("text/xml, application/xml") == "text/xml"
        assert get_first_mime_type("") is None
        assert get_first_mime_type(None) is None

    @pytest.mark.parametrize("name,expected", [
        ("report.pdf", "pdf"),
        ("archive.tar.gz", "tar.gz"),
        ("/some/dir.d/README", ""),
        ("noext", ""),
        (".bashrc", "bashrc"),
    ])
    def test_get_extension(self, name, expected):
        """Test that the extension is everything after the first dot of the name."""
        assert get_extension(name) == expected

    def test_is_text_mime_type(self):
        """Test the TextMimeType check."""
        assert is_text_mime_type(TextMimeType("text/plain"))
        assert not is_text_mime_type(MimeType("text/plain"))

    def test_native_byte_order(self):
        """Test that the native byte order matches the interpreter."""
        assert get_native_byte_order() == sys.byteorder
