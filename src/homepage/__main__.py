"""
=============================================================================
HOMEPAGE CLI ENTRY POINT
=============================================================================

    python -m homepage                                  # ~/Contents on localhost:8080
    python -m homepage -c ./site -p 9000                # another directory and port
    python -m homepage --hostName 0.0.0.0 -l info       # all interfaces, less noise
    homepage --workers 2                                # console script, 2 workers

Startup order:

    1. parse arguments (argparse exits with status 2 on bad input)
    2. configure logging at the requested level
    3. log every effective setting and where it came from
    4. validate the configuration          ── ValueError ───▶ exit 1
    5. load <contentPath>/pages.json        ── ManifestError ─▶ exit 1
    6. bind and serve                       ── OSError ──────▶ exit 1

=============================================================================
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import __version__
from .config import ServerConfig, default_content_path, default_workers
from .content.store import ContentStore
from .errors import ManifestError
from .server import HomepageServer, configure_logging


logger = logging.getLogger("homepage")

CLI_LOG_LEVELS = ("debug", "info", "error")


def build_parser() -> argparse.ArgumentParser:
    """
    Options default to None so that the log can tell an explicit value
    from a default one; resolve_settings() fills the defaults in.
    """
    parser = argparse.ArgumentParser(
        prog="homepage",
        description="Serve a small static homepage described by pages.json",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  homepage                              # ~/Contents on localhost:8080
  homepage -c ./site -p 9000            # ./site/pages.json on port 9000
  homepage -n 0.0.0.0 -l info           # all interfaces
        """,
    )

    parser.add_argument(
        "--hostName", "-n",
        dest="host_name",
        default=None,
        help="Host to bind to (default: localhost)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)",
    )
    parser.add_argument(
        "--logLevel", "-l",
        dest="log_level",
        choices=CLI_LOG_LEVELS,
        default=None,
        help="Logging level (default: debug)",
    )
    parser.add_argument(
        "--contentPath", "-c",
        dest="content_path",
        default=None,
        help="Directory holding pages.json and the assets (default: ~/Contents)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Worker threads (default: one per CPU core)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"homepage {__version__}",
    )
    return parser


def resolve_settings(args: argparse.Namespace) -> Dict[str, Tuple[Any, str]]:
    """
    Pair each setting with its effective value and origin.

    Returns:
        {"host": ("localhost", "default"), "port": (9000, "argument"), ...}
    """
    defaults = {
        "host": "localhost",
        "port": 8080,
        "log_level": "debug",
        "content_path": default_content_path(),
        "workers": default_workers(),
    }
    given = {
        "host": args.host_name,
        "port": args.port,
        "log_level": args.log_level,
        "content_path": Path(args.content_path) if args.content_path else None,
        "workers": args.workers,
    }

    settings = {}
    for name, default in defaults.items():
        if given[name] is None:
            settings[name] = (default, "default")
        else:
            settings[name] = (given[name], "argument")
    return settings


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)

    configure_logging(settings["log_level"][0])
    for name, (value, origin) in settings.items():
        logger.info(f"{name} = {value} (from {origin})")

    config = ServerConfig(
        host=settings["host"][0],
        port=settings["port"][0],
        content_path=settings["content_path"][0],
        log_level=settings["log_level"][0].upper(),
        workers=settings["workers"][0],
    )

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        store = ContentStore.load(config.manifest_path)
    except ManifestError as e:
        logger.error(f"Cannot load {config.manifest_path}: {e}")
        sys.exit(1)

    server = HomepageServer(config, store)
    try:
        server.run()
    except OSError as e:
        logger.error(f"Server failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
