"""Tests for MagicMimeDetector and rule loading."""

import io

import pytest

from mimeutil.detectors.magic import MagicMimeDetector, bundled_rules_text, load_rule_forest
from mimeutil.errors import UnsupportedInput
from mimeutil.magic.grammar import compile_rules
from mimeutil.mime_type import DIRECTORY_MIME_TYPE, TextMimeType

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0dIHDR\x00\x00\x00\x10\x00\x00\x00\x10\x08\x06\x00\x00\x00"


@pytest.fixture(scope="module")
def detector():
    """Detector with only the bundled rules."""
    return MagicMimeDetector(use_user_rules=False)


class TestBundledRules:
    """Tests for the rules shipped with the package."""

    def test_bundled_rules_compile(self):
        """Test that every bundled group compiles."""
        text = bundled_rules_text()
        forest = compile_rules(text.splitlines(), source="<bundled>")
        groups = [line for line in text.splitlines() if line and line[0].isdigit()]
        assert len(forest) == len(groups)

    def test_load_rule_forest_falls_back_to_bundled(self, tmp_path):
        """Test that the bundled rules load when no system file exists."""
        forest = load_rule_forest(
            use_user_rules=False,
            use_system_rules=True,
            system_locations=[str(tmp_path / "missing*.mime")],
        )
        assert "image/png" in forest.mime_types()

    def test_custom_rules_come_first(self, tmp_path):
        """Test that configured rule files load before other sources."""
        rules = tmp_path / "custom.mime"
        rules.write_text("0\tstring\tMYFMT\tapplication/x-myfmt\n", encoding="latin-1")
        forest = load_rule_forest(rule_files=[str(rules)], use_user_rules=False)
        assert forest.mime_types()[0] == "application/x-myfmt"

    def test_system_rules_replace_bundled(self, tmp_path):
        """Test that a system file with rules suppresses the bundled rules."""
        rules = tmp_path / "magic.mime"
        rules.write_text("0\tstring\tSYS\tapplication/x-sys\n", encoding="latin-1")
        forest = load_rule_forest(
            use_user_rules=False,
            use_system_rules=True,
            system_locations=[str(tmp_path / "magic*")],
        )
        assert forest.mime_types() == ["application/x-sys"]

    def test_missing_rule_file_is_skipped(self, tmp_path):
        """Test that a configured file that does not exist is not fatal."""
        forest = load_rule_forest(rule_files=[str(tmp_path / "nope.mime")], use_user_rules=False)
        assert "image/png" in forest.mime_types()


class TestMagicMimeDetector:
    """Tests for classification through the detector interface."""

    def test_png_bytes(self, detector):
        """Test that PNG bytes are recognised with full specificity."""
        result = detector.get_mime_types_bytes(PNG_BYTES)
        png = result.get("image/png")
        assert png is not None
        assert png.specificity >= 1

    def test_empty_bytes(self, detector):
        """Test that empty content reports application/x-empty."""
        assert detector.get_mime_types_bytes(b"") == "application/x-empty"

    def test_plain_text_fallback(self, detector):
        """Test the text fallback when no rule matches."""
        assert detector.get_mime_types_bytes(b"just some words\n") == "text/plain"

    def test_fallback_disabled(self):
        """Test that no fallback leaves unmatched content unclassified."""
        detector = MagicMimeDetector(use_user_rules=False, text_fallback=False)
        assert len(detector.get_mime_types_bytes(b"just some words\n")) == 0

    def test_unknown_binary(self, detector):
        """Test that unrecognised binary content yields an empty set."""
        assert len(detector.get_mime_types_bytes(b"\x00\x01\x02\x03\xfe")) == 0

    def test_declared_encoding_gives_text_mime_type(self, detector):
        """Test that a BOM rule produces a TextMimeType with its encoding."""
        result = detector.get_mime_types_bytes(b"\xff\xfeh\x00i\x00")
        text = result.get("text/plain")
        assert isinstance(text, TextMimeType)
        assert text.encoding == "UTF-16LE"

    def test_xml_and_svg(self, detector):
        """Test nested search rules inside an XML document."""
        svg = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg"/>'
        assert "image/svg+xml" in detector.get_mime_types_bytes(svg)
        assert "text/xml" in detector.get_mime_types_bytes(b"<?xml version='1.0'?><root/>")

    def test_directory(self, detector, tmp_path):
        """Test that directories report application/directory."""
        assert detector.get_mime_types_path(tmp_path) == DIRECTORY_MIME_TYPE

    def test_path(self, detector, tmp_path):
        """Test classifying a file on disk."""
        path = tmp_path / "image.bin"
        path.write_bytes(PNG_BYTES)
        assert "image/png" in detector.get_mime_types_path(path)

    def test_stream_position_restored(self, detector):
        """Test that the stream position is unchanged after classification."""
        stream = io.BytesIO(b"xx" + PNG_BYTES)
        stream.seek(2)
        assert "image/png" in detector.get_mime_types_stream(stream)
        assert stream.tell() == 2

    def test_file_handle(self, detector, tmp_path):
        """Test classifying an open file handle."""
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n")
        with open(path, "rb") as f:
            assert "application/pdf" in detector.get_mime_types_file(f)
            assert f.tell() == 0

    def test_tar_at_offset(self, detector):
        """Test a rule at a large absolute offset."""
        data = bytearray(512)
        data[257:263] = b"ustar\x00"
        assert "application/x-tar" in detector.get_mime_types_bytes(bytes(data))

    def test_unseekable_stream_unsupported(self, detector):
        """Test that an unseekable stream is reported as unsupported input."""

        class Unseekable(io.RawIOBase):
            def readable(self):
                return True

            def seekable(self):
                return False

        with pytest.raises(UnsupportedInput):
            detector.get_mime_types_stream(Unseekable())

    def test_known_mime_types(self, detector):
        """Test that the types the rules can emit are advertised."""
        known = detector.known_mime_types()
        assert "image/png" in known
        assert "application/pdf" in known

    def test_name(self, detector):
        """Test that the registry key is the qualified class name."""
        assert detector.name == "mimeutil.detectors.magic.MagicMimeDetector"
