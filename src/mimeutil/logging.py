"""Logging setup for mimeutil.

Records about one classification or one magic rule carry their subject in
``extra_fields``, built with :func:`classification_extra`. A raised
:class:`~mimeutil.errors.MimeError` contributes the same fields through its
``context``. The JSON formatter groups them under ``classification`` and the
console formatters append them as a ``[key=value ...]`` tag.
"""

import logging
import logging.handlers
import json
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from pathlib import Path

# In display order
CLASSIFICATION_FIELDS = ("path", "target", "detector", "source", "line")

# MimeError context key -> classification field; a context "line" is the
# raw rule text, not a number
_CONTEXT_FIELDS = {
    "path": "path",
    "target": "target",
    "detector": "detector",
    "class_path": "detector",
    "source": "source",
    "line_number": "line",
}

# Chatty third-party loggers
_QUIET_LOGGERS = ("uvicorn.access", "httpx")


def classification_extra(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` argument of a log call about a classification.

    ``None`` values are dropped so callers can pass optional fields as is::

        logger.warning("Detector failed", extra=classification_extra(detector=name, target=target))
    """
    return {"extra_fields": {k: v for k, v in fields.items() if v is not None}}


def classification_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the classification fields of a record.

    Explicit ``extra_fields`` win over :class:`LogContext` fields, which win
    over the context of an attached MimeError.
    """
    fields: Dict[str, Any] = {}
    if record.exc_info and record.exc_info[1] is not None:
        context = getattr(record.exc_info[1], "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                if key in _CONTEXT_FIELDS and value is not None:
                    fields[_CONTEXT_FIELDS[key]] = value
    for attr in ("context_fields", "extra_fields"):
        extra = getattr(record, attr, None) or {}
        for key in CLASSIFICATION_FIELDS:
            if key in extra:
                fields[key] = extra[key]
    return {key: fields[key] for key in CLASSIFICATION_FIELDS if key in fields}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        classification = classification_fields(record)
        if classification:
            log_data["classification"] = classification

        if record.exc_info and record.exc_info[0] is not None:
            exc = record.exc_info[1]
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": getattr(exc, "message", str(exc)),
                "traceback": self.formatException(record.exc_info),
            }
            context = getattr(exc, "context", None)
            if isinstance(context, dict) and context:
                log_data["exception"]["context"] = {k: str(v) for k, v in context.items()}

        # Fields outside the classification set go to the top level
        for attr in ("context_fields", "extra_fields"):
            for key, value in (getattr(record, attr, None) or {}).items():
                if key not in CLASSIFICATION_FIELDS:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


class _ClassificationTagMixin:
    """Append the classification fields to the formatted message."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        fields = classification_fields(record)
        if not fields:
            return message
        tag = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} [{tag}]"


class DetailedFormatter(_ClassificationTagMixin, logging.Formatter):
    """Human-readable formatter with source location."""

    def __init__(self) -> None:
        fmt = (
            "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | "
            "%(message)s"
        )
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")


class SimpleFormatter(_ClassificationTagMixin, logging.Formatter):
    """Console formatter."""

    def __init__(self) -> None:
        super().__init__(fmt="%(levelname)-8s | %(name)s | %(message)s")


_FORMATTERS = {
    "json": StructuredFormatter,
    "detailed": DetailedFormatter,
    "simple": SimpleFormatter,
}


def setup_logging(
    level: str = "INFO",
    format: str = "simple",
    log_file: Optional[Path] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    detector_level: Optional[str] = None,
) -> None:
    """Configure logging for the mimeutil process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Console format (simple, detailed, json)
        log_file: Optional log file path, always written as JSON
        max_file_size_mb: Max log file size in MB
        backup_count: Number of backup files to keep
        detector_level: Separate level for the detector and magic loggers,
            which log once per input at DEBUG
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_FORMATTERS.get(format, SimpleFormatter)())
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in ("mimeutil.detectors", "mimeutil.magic"):
        logging.getLogger(name).setLevel(
            getattr(logging, detector_level.upper()) if detector_level else logging.NOTSET
        )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger with structured logging support."""
    return logging.getLogger(name)


class LogContext:
    """Tag every record emitted inside the block with classification fields.

    Fields land in ``record.context_fields`` so a log call inside the block
    can still pass its own ``extra_fields``. The record factory is
    process-wide, so use it from a single thread (the CLI tags every
    record emitted while one file is classified).
    """

    def __init__(self, logger: logging.Logger, **fields: Any) -> None:
        self.logger = logger
        self.fields = classification_extra(**fields)["extra_fields"]
        self.old_factory = None

    def __enter__(self) -> "LogContext":
        self.old_factory = logging.getLogRecordFactory()

        def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = self.old_factory(*args, **kwargs)
            record.context_fields = {**getattr(record, "context_fields", {}), **self.fields}
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        logging.setLogRecordFactory(self.old_factory)
