"""Configuration for mimeutil."""

from .loader import ConfigLoader, get_config, reload_config
from .schema import (
    ApiConfig,
    DetectionConfig,
    ExtensionConfig,
    GlobConfig,
    LoggingConfig,
    MagicConfig,
    MimeUtilConfig,
    TextConfig,
)

__all__ = [
    'ConfigLoader',
    'get_config',
    'reload_config',
    'ApiConfig',
    'DetectionConfig',
    'ExtensionConfig',
    'GlobConfig',
    'LoggingConfig',
    'MagicConfig',
    'MimeUtilConfig',
    'TextConfig',
]
