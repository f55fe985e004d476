"""Tests for logging formatters, setup and LogContext."""

import json
import logging
import sys

from mimeutil.errors import ClassificationFailure, InvalidMagicEntry
from mimeutil.logging import (
    DetailedFormatter,
    LogContext,
    SimpleFormatter,
    StructuredFormatter,
    classification_extra,
    get_logger,
    setup_logging,
)


def make_record(msg="hello", level=logging.INFO, exc_info=None):
    return logging.LogRecord("mimeutil.test", level, __file__, 10, msg, None, exc_info, func="fn")


class TestFormatters:
    """Tests for the three formatters."""

    def test_structured(self):
        """Test the JSON fields."""
        data = json.loads(StructuredFormatter().format(make_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "mimeutil.test"
        assert data["message"] == "hello"
        assert data["function"] == "fn"

    def test_structured_exception_context(self):
        """Test that MimeError context is included with the exception."""
        try:
            raise ClassificationFailure("cannot read", detector="magic")
        except ClassificationFailure:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(StructuredFormatter().format(record))
        assert data["exception"]["type"] == "ClassificationFailure"
        assert data["exception"]["context"] == {"detector": "magic"}

    def test_structured_extra_fields(self):
        """Test that extra_fields are merged into the payload."""
        record = make_record()
        record.extra_fields = {"path": "/tmp/x"}
        assert json.loads(StructuredFormatter().format(record))["classification"] == {"path": "/tmp/x"}

    def test_structured_classification_fields(self):
        """Test that classification fields are grouped apart from other extras."""
        record = make_record()
        record.extra_fields = {"detector": "magic", "target": "a.bin", "version": "1.0"}
        data = json.loads(StructuredFormatter().format(record))
        assert data["classification"] == {"target": "a.bin", "detector": "magic"}
        assert data["version"] == "1.0"
        assert "detector" not in data

    def test_structured_fields_from_error_context(self):
        """Test that a magic rule error names its source and line number."""
        try:
            raise InvalidMagicEntry("bad offset", source="rules.magic", line_number=7, line="zz\tstring\tA")
        except InvalidMagicEntry:
            record = make_record(level=logging.WARNING, exc_info=sys.exc_info())
        data = json.loads(StructuredFormatter().format(record))
        assert data["classification"] == {"source": "rules.magic", "line": 7}

    def test_no_classification_key_without_fields(self):
        """Test that plain records have no classification object."""
        assert "classification" not in json.loads(StructuredFormatter().format(make_record()))

    def test_simple_and_detailed(self):
        """Test the human-readable formats."""
        record = make_record()
        assert SimpleFormatter().format(record) == "INFO     | mimeutil.test | hello"
        assert "mimeutil.test:fn:10 | hello" in DetailedFormatter().format(record)

    def test_console_tag(self):
        """Test that console formats append the classification fields."""
        record = make_record("Detector failed")
        record.extra_fields = classification_extra(detector="magic", target="a.bin", line=None)["extra_fields"]
        expected = "INFO     | mimeutil.test | Detector failed [target=a.bin detector=magic]"
        assert SimpleFormatter().format(record) == expected
        assert DetailedFormatter().format(record).endswith("Detector failed [target=a.bin detector=magic]")


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_handler(self, restore_logging):
        """Test level and formatter selection."""
        setup_logging(level="debug", format="json")
        assert restore_logging.level == logging.DEBUG
        assert len(restore_logging.handlers) == 1
        assert isinstance(restore_logging.handlers[0].formatter, StructuredFormatter)

    def test_log_file(self, restore_logging, tmp_path):
        """Test that a log file gets JSON records."""
        log_file = tmp_path / "logs" / "mimeutil.log"
        setup_logging(level="INFO", format="simple", log_file=log_file)
        get_logger("mimeutil.test").info("written")
        for handler in restore_logging.handlers:
            handler.flush()
        line = log_file.read_text(encoding="utf-8").splitlines()[0]
        assert json.loads(line)["message"] == "written"

    def test_detector_level(self, restore_logging):
        """Test that detector and magic loggers get their own level."""
        setup_logging(level="DEBUG", detector_level="warning")
        assert logging.getLogger("mimeutil.detectors").level == logging.WARNING
        assert logging.getLogger("mimeutil.magic").level == logging.WARNING
        assert not logging.getLogger("mimeutil.magic.grammar").isEnabledFor(logging.INFO)
        assert logging.getLogger("mimeutil.registry").isEnabledFor(logging.DEBUG)

    def test_detector_level_defaults_to_root(self, restore_logging):
        """Test that without a detector level the root level applies."""
        setup_logging(level="INFO", detector_level="ERROR")
        setup_logging(level="INFO")
        assert logging.getLogger("mimeutil.detectors.magic").getEffectiveLevel() == logging.INFO


class TestLogContext:
    """Tests for LogContext."""

    def test_fields_added_and_removed(self, restore_logging):
        """Test that records carry the fields only inside the context."""
        logger = get_logger("mimeutil.test")
        with LogContext(logger, path="a.png"):
            inside = logger.makeRecord("mimeutil.test", logging.INFO, __file__, 1, "in", None, None)
        outside = logger.makeRecord("mimeutil.test", logging.INFO, __file__, 1, "out", None, None)
        assert inside.context_fields == {"path": "a.png"}
        assert not hasattr(outside, "context_fields")

    def test_call_site_fields_inside_context(self, restore_logging, caplog):
        """Test that a log call inside the block can add its own fields."""
        logger = get_logger("mimeutil.test")
        with LogContext(logger, path="a.png"), caplog.at_level(logging.WARNING, logger="mimeutil.test"):
            logger.warning("Detector failed", extra=classification_extra(detector="magic"))
        record = caplog.records[0]
        assert SimpleFormatter().format(record).endswith("[path=a.png detector=magic]")
