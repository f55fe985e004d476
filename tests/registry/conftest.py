"""Shared fixtures for registry tests."""

import pytest

from mimeutil.detectors.base import MimeDetector
from mimeutil.mime_type import MimeType


class StubDetector(MimeDetector):
    """Detector returning fixed types for every kind of input."""

    def __init__(self, name, *mime_types, error=None, read=0):
        self._name = name
        self.mime_types = list(mime_types)
        self.error = error
        self.read = read
        self.calls = 0

    @property
    def name(self):
        return self._name

    def known_mime_types(self):
        return [str(m) for m in self.mime_types]

    def _answer(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [m if isinstance(m, MimeType) else MimeType(m) for m in self.mime_types]

    def _from_path(self, path):
        return self._answer()

    def _from_file(self, handle):
        handle.read(self.read)
        return self._answer()

    def _from_bytes(self, data):
        return self._answer()

    def _from_stream(self, stream):
        stream.read(self.read)
        return self._answer()


@pytest.fixture
def stub():
    """Factory for stub detectors."""
    return StubDetector
