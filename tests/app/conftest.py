"""Shared fixtures for CLI, logging and API tests."""

import logging

import pytest

from mimeutil.config.schema import MimeUtilConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\x0dIHDR\x00\x00\x00\x10\x00\x00\x00\x10\x08\x06\x00\x00\x00"


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def offline_config():
    """Configuration that ignores per-user rule and mapping files."""
    return MimeUtilConfig(
        magic={"use_user_rules": False},
        extension={"use_user_mappings": False},
    )


@pytest.fixture
def restore_logging():
    """Put the root logger and record factory back after a test reconfigures them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    factory = logging.getLogRecordFactory()
    scoped = {name: logging.getLogger(name).level for name in ("mimeutil.detectors", "mimeutil.magic")}
    yield root
    for name, scoped_level in scoped.items():
        logging.getLogger(name).setLevel(scoped_level)
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.setLogRecordFactory(factory)
