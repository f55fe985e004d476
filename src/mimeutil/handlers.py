"""Post-processing handlers that refine text MIME types."""

import re
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Optional, Union

from .mime_type import MimeType, TextMimeType, is_known_encoding


class MimeHandler(ABC):
    """Refines a TextMimeType after the detectors have run.

    A handler declares the types it is interested in; an empty interest
    set means every text type. During one classification pass a handler
    fires at most once, the first time a type it is interested in is
    present. ``handle`` may rewrite the type and encoding in place and
    returns True to stop the remaining handlers from running.
    """

    def __init__(self, interests: Optional[Iterable[Union[str, MimeType]]] = None) -> None:
        self.interests: FrozenSet[MimeType] = frozenset(
            m if isinstance(m, MimeType) else MimeType(m) for m in (interests or ())
        )

    @property
    def name(self) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def is_interested(self, mime_type: MimeType) -> bool:
        if not self.interests:
            return True
        return mime_type in self.interests

    @abstractmethod
    def handle(self, mime_type: TextMimeType, content: str) -> bool:
        """Refine ``mime_type`` from the decoded ``content``.

        Returns:
            True to stop later handlers in the chain
        """


_XML_DECLARATION = re.compile(r"""^\s*<\?xml[^>]*?encoding\s*=\s*["']([A-Za-z0-9._:-]+)["']""")


class XmlDeclarationHandler(MimeHandler):
    """Turns ``text/plain`` content with an XML declaration into ``text/xml``.

    The encoding named in the declaration is applied when it is a known
    encoding.
    """

    def __init__(self) -> None:
        super().__init__(["text/plain"])

    def handle(self, mime_type: TextMimeType, content: str) -> bool:
        if not content.lstrip().startswith("<?xml"):
            return False
        mime_type.set_mime_type("text/xml")
        match = _XML_DECLARATION.match(content)
        if match and is_known_encoding(match.group(1)):
            mime_type.set_encoding(match.group(1))
        return False


# Short name -> dotted class path, used to seed the default registry
BUILTIN_HANDLERS = {
    "xml-declaration": "mimeutil.handlers.XmlDeclarationHandler",
}
