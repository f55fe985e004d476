"""Command line interface for MIME detection and Accept negotiation."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config.loader import ConfigLoader
from .config.schema import MimeUtilConfig
from .errors import MimeError
from .logging import LogContext, setup_logging
from .negotiation import negotiate
from .registry import create_registry, get_most_specific_mime_type

# Application name derived from package name
_package = __package__ or "mimeutil"
APP_NAME = _package.replace('_', '-').replace('.', '-')


def detect_command(config: MimeUtilConfig, paths: List[Path], as_json: bool = False) -> int:
    """Classify files and print their MIME types.

    Args:
        config: Configuration object
        paths: Files or directories to classify
        as_json: Print one JSON object per path instead of text

    Returns:
        Exit code (0 when every path was classified)
    """
    logger = logging.getLogger(__package__ or __name__)
    try:
        registry = create_registry(config)
    except MimeError as e:
        logger.error(f"Cannot set up detectors: {e.message}")
        return 2
    failed = 0

    for path in paths:
        with LogContext(logger, path=str(path)):
            if not path.exists():
                logger.error(f"Path does not exist: {path}")
                failed += 1
                continue

            mime_types = registry.classify_path(path)
            best = get_most_specific_mime_type(mime_types)
            logger.debug(f"Classified: {{'path': {str(path)!r}, 'mime_types': {str(mime_types)!r}}}")

        if as_json:
            print(json.dumps({
                "path": str(path),
                "mime_types": [str(m) for m in mime_types],
                "most_specific": str(best) if best else None,
            }))
        else:
            print(f"{path}: {mime_types} (most specific: {best})")

    return 1 if failed else 0


def negotiate_command(wanted: str, provided: str) -> int:
    """Print the provided type that best satisfies ``wanted``."""
    logger = logging.getLogger(__package__ or __name__)
    try:
        print(negotiate(wanted, provided))
    except MimeError as e:
        logger.error(f"Negotiation failed: {e.message}")
        return 1
    return 0


def serve_command(config: MimeUtilConfig, host: Optional[str] = None, port: Optional[int] = None) -> int:
    """Run the HTTP API until interrupted."""
    import uvicorn

    from .api.server import create_app

    logger = logging.getLogger(__package__ or __name__)
    host = host or config.api.host
    port = port or config.api.port
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Detect MIME types and negotiate content types"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a config file merged over system and user config"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (overrides config)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Classify files")
    detect.add_argument("paths", nargs="+", type=Path, help="Files or directories to classify")
    detect.add_argument("--json", action="store_true", help="Print JSON lines")

    negotiate_parser = subparsers.add_parser("negotiate", help="Pick a type for an Accept header")
    negotiate_parser.add_argument("wanted", help="Accept header value, e.g. 'text/*;q=0.5,application/json'")
    negotiate_parser.add_argument("provided", help="Comma-separated types that can be provided")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (overrides config)")
    serve.add_argument("--port", type=int, help="Bind port (overrides config)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the mimeutil command."""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigLoader(app_name=APP_NAME).load(config_file=args.config)
    except MimeError as e:
        print(f"{APP_NAME}: {e.message}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        format=config.logging.format,
        log_file=Path(config.logging.file) if config.logging.file else None,
        detector_level=config.logging.detector_level,
    )

    if args.command == "detect":
        return detect_command(config, args.paths, as_json=args.json)
    if args.command == "negotiate":
        return negotiate_command(args.wanted, args.provided)
    return serve_command(config, host=args.host, port=args.port)


if __name__ == "__main__":
    sys.exit(main())
