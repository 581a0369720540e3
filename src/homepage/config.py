"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable in one dataclass, built once at startup and passed down
explicitly. Three ways to get one:

    ServerConfig(port=9000, content_path=Path("site"))   # in code / tests
    ServerConfig.from_env()                              # HOMEPAGE_* variables
    python -m homepage --port 9000 --contentPath site    # CLI, see __main__

validate() is called before the server binds so a bad value fails the
process at startup, not on the first request.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .content.store import MANIFEST_NAME


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_content_path() -> Path:
    return Path.home() / "Contents"


def default_workers() -> int:
    """One worker per CPU core."""
    return os.cpu_count() or 1


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """
    Configuration for the homepage server.

    NETWORK
        host, port, backlog, buffer_size, timeout

    HTTP
        keep_alive, keep_alive_timeout, max_request_size, server_name

    WORKERS
        workers, max_workers, worker_idle_timeout, queue_size

    CONTENT
        content_path (directory holding pages.json and the assets)

    LOGGING
        log_level, access_log_format
    """

    host: str = "localhost"
    port: int = 8080
    """0 lets the OS pick a free port; the server reports the real one."""

    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    keep_alive: bool = True
    """Honour keep-alive requests. False closes after every response."""

    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024
    server_name: str = "homepage"

    workers: int = field(default_factory=default_workers)
    """Workers kept running at all times."""

    max_workers: int = 64
    """
    Ceiling the pool grows to while every worker holds a connection, so
    idle clients cannot starve the others. Never below workers.
    """

    worker_idle_timeout: float = 60.0
    """Seconds an extra worker waits for work before it exits."""

    queue_size: int = 100
    """Accepted connections that may wait for a worker before 503."""

    content_path: Path = field(default_factory=default_content_path)

    log_level: str = "DEBUG"
    access_log_format: str = "text"

    def __post_init__(self):
        self.content_path = Path(self.content_path).expanduser()

    @property
    def manifest_path(self) -> Path:
        return self.content_path / MANIFEST_NAME

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

            HOMEPAGE_HOST          bind host              (localhost)
            HOMEPAGE_PORT          bind port              (8080)
            HOMEPAGE_CONTENT_PATH  content directory      (~/Contents)
            HOMEPAGE_LOG_LEVEL     logging level          (DEBUG)
            HOMEPAGE_WORKERS       worker threads         (CPU count)
            HOMEPAGE_MAX_WORKERS   worker ceiling         (64)
            HOMEPAGE_TIMEOUT       first-request timeout  (30)
            HOMEPAGE_KEEP_ALIVE    persistent connections (true)
            HOMEPAGE_ACCESS_LOG    access log format      (text)

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        content_path = os.getenv("HOMEPAGE_CONTENT_PATH")
        return cls(
            host=os.getenv("HOMEPAGE_HOST", "localhost"),
            port=int(os.getenv("HOMEPAGE_PORT", "8080")),
            content_path=Path(content_path) if content_path else default_content_path(),
            log_level=os.getenv("HOMEPAGE_LOG_LEVEL", "DEBUG").upper(),
            workers=int(os.getenv("HOMEPAGE_WORKERS", str(default_workers()))),
            max_workers=int(os.getenv("HOMEPAGE_MAX_WORKERS", "64")),
            timeout=float(os.getenv("HOMEPAGE_TIMEOUT", "30")),
            keep_alive=_env_bool("HOMEPAGE_KEEP_ALIVE", True),
            access_log_format=os.getenv("HOMEPAGE_ACCESS_LOG", "text"),
        )

    def validate(self) -> None:
        """
        Check every value, raising on the first bad one.

        Raises:
            ValueError: Describing the offending setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

        if self.worker_idle_timeout <= 0:
            raise ValueError(
                f"worker_idle_timeout must be > 0, got {self.worker_idle_timeout}"
            )

        if self.queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {self.queue_size}")

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.buffer_size < 1024:
            raise ValueError(f"buffer_size must be >= 1024, got {self.buffer_size}")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

        if self.keep_alive_timeout <= 0:
            raise ValueError(
                f"keep_alive_timeout must be > 0, got {self.keep_alive_timeout}"
            )

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )

        if self.access_log_format not in ("text", "json"):
            raise ValueError(
                f"access_log_format must be 'text' or 'json', got {self.access_log_format!r}"
            )
