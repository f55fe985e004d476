"""Built-in MIME detectors."""

from .base import MimeDetector
from .extension import ExtensionMimeDetector
from .magic import MagicMimeDetector
from .opendesktop import OpendesktopMimeDetector
from .signature import SignatureMimeDetector
from .text import TextMimeDetector
from .windows_registry import WindowsRegistryMimeDetector

# Short name -> dotted class path, used to seed the default registry
BUILTIN_DETECTORS = {
    "magic": "mimeutil.detectors.magic.MagicMimeDetector",
    "extension": "mimeutil.detectors.extension.ExtensionMimeDetector",
    "text": "mimeutil.detectors.text.TextMimeDetector",
    "glob": "mimeutil.detectors.opendesktop.OpendesktopMimeDetector",
    "signature": "mimeutil.detectors.signature.SignatureMimeDetector",
    "windows-registry": "mimeutil.detectors.windows_registry.WindowsRegistryMimeDetector",
}

__all__ = [
    'BUILTIN_DETECTORS',
    'MimeDetector',
    'ExtensionMimeDetector',
    'MagicMimeDetector',
    'OpendesktopMimeDetector',
    'SignatureMimeDetector',
    'TextMimeDetector',
    'WindowsRegistryMimeDetector',
]
