"""Configuration schema definitions using Pydantic."""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import InvalidMimeTypeFormat
from ..mime_type import UNKNOWN_MIME_TYPE, parse_mime_type


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra='forbid')

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level"
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="simple",
        description="Log format type"
    )
    file: str | None = Field(default=None, description="Optional log file path")
    detector_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = Field(
        default=None,
        description="Level for the detector and magic rule loggers, defaults to level"
    )

    @field_validator('level', 'detector_level', mode='before')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize log level to uppercase for case-insensitive input."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v: str) -> str:
        """Normalize format to lowercase for case-insensitive input."""
        if isinstance(v, str):
            return v.lower()
        return v


class DetectionConfig(BaseModel):
    """Which detectors run and what an unclassifiable input reports."""

    model_config = ConfigDict(extra='forbid')

    detectors: List[str] = Field(
        default_factory=lambda: ["magic", "extension", "text", "signature"],
        description="Detectors registered at start-up: built-in short names or dotted class paths"
    )
    handlers: List[str] = Field(
        default_factory=lambda: ["xml-declaration"],
        description="Handlers run after each detector: built-in short names or dotted class paths"
    )
    unknown_mime_type: str = Field(
        default=UNKNOWN_MIME_TYPE,
        description="Type reported when no detector recognises the input"
    )

    @field_validator('detectors', 'handlers', mode='before')
    @classmethod
    def split_detectors(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator('unknown_mime_type')
    @classmethod
    def check_unknown_mime_type(cls, v: str) -> str:
        try:
            media, sub = parse_mime_type(v)
        except InvalidMimeTypeFormat as e:
            raise ValueError(e.message) from e
        return f"{media}/{sub}"


class MagicConfig(BaseModel):
    """Magic rule sources."""

    model_config = ConfigDict(extra='forbid')

    rule_files: List[str] = Field(
        default_factory=list,
        description="Extra magic rule files, loaded before every other source"
    )
    use_user_rules: bool = Field(
        default=True,
        description="Load magic.mime from the user config directory if present"
    )
    use_system_rules: bool = Field(
        default=False,
        description="Load the system magic.mime files; the bundled rules are used when none load"
    )
    system_locations: List[str] = Field(
        default_factory=lambda: [
            "/etc/magic.mime",
            "/usr/share/file/magic.mime",
            "/usr/share/mimelnk/magic",
        ],
        description="System rule files; glob patterns are allowed"
    )
    text_fallback: bool = Field(
        default=True,
        description="Check for plain text or empty content when no rule matches"
    )


class ExtensionConfig(BaseModel):
    """File extension mapping tables."""

    model_config = ConfigDict(extra='forbid')

    mappings_files: List[str] = Field(
        default_factory=list,
        description="Extra TOML mapping files; later files override earlier ones"
    )
    use_system_types: bool = Field(
        default=False,
        description="Start from the interpreter's mimetypes table"
    )
    use_user_mappings: bool = Field(
        default=True,
        description="Load mime-types.toml from the user config directory if present"
    )


class GlobConfig(BaseModel):
    """Shared MIME database glob files."""

    model_config = ConfigDict(extra='forbid')

    globs_files: List[str] = Field(
        default_factory=list,
        description="globs2/globs files; empty means the standard shared MIME directories"
    )


class TextConfig(BaseModel):
    """Text and encoding sniffing."""

    model_config = ConfigDict(extra='forbid')

    sample_size: int = Field(default=4096, ge=1, description="Leading bytes examined")
    threshold: float = Field(
        default=0.90,
        gt=0.0,
        le=1.0,
        description="Fraction of printable characters needed to call content text"
    )


class ApiConfig(BaseModel):
    """HTTP API settings."""

    model_config = ConfigDict(extra='forbid')

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8321, ge=1, le=65535, description="Bind port")
    enable_cors: bool = Field(default=False, description="Add CORS middleware")
    cors_origins: List[str] = Field(default_factory=list, description="Allowed origins; empty means any")
    max_body_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Largest request body accepted for detection"
    )


class MimeUtilConfig(BaseModel):
    """Root configuration for mimeutil."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    magic: MagicConfig = Field(default_factory=MagicConfig)
    extension: ExtensionConfig = Field(default_factory=ExtensionConfig)
    glob: GlobConfig = Field(default_factory=GlobConfig)
    text: TextConfig = Field(default_factory=TextConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
