"""
=============================================================================
HOMEPAGE SERVER
=============================================================================

Ties the transport to the request pipeline.

    SocketServer.accept()
        │
        ▼
    ThreadPool.submit(_process_connection)  ── queue full ──▶ 503, close
        │                                       (all busy: grows up to max_workers)
        ▼  (worker thread, once per request on the connection)
    Connection.read_request()   ── timeout / EOF ──────────▶ close
        │
        ▼
    RequestParser.parse()       ── HTTPParseError ─────────▶ close, no reply
        │
        ▼
    AccessLogMiddleware → RequestPipeline.handle()
        │                         └── unexpected exception ─▶ 500
        ▼
    Connection header fix-up, Date, Server
        │
        ▼
    Connection.send_response()
        │
        └── keep-alive? ── yes ──▶ read the next request
                        └─ no ───▶ close

=============================================================================
"""

import logging
import os
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .content.assets import AssetReader
from .content.store import ContentStore, ContentType
from .core import Connection, SocketServer, ThreadPool
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    text_response,
)
from .middleware import AccessLogMiddleware, MiddlewarePipeline
from .pipeline import RequestPipeline


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

SHUTDOWN_TIMEOUT = 30.0


def configure_logging(level_name: str) -> int:
    """
    Configure the root logger once for the process.

    Safe to call again: basicConfig is a no-op once handlers exist, but
    the "homepage" logger level is always updated.

    Returns:
        The numeric level applied.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("homepage").setLevel(level)
    return level


class HomepageServer:
    """
    Serves the pages of a ContentStore over HTTP/1.x.

    Usage:
        store = ContentStore.load(config.manifest_path)
        server = HomepageServer(config, store)
        server.run()        # blocks until SIGINT/SIGTERM or stop()

    In tests, run() on a background thread and call stop() when done;
    signal handlers are only installed on the main thread.
    """

    def __init__(
        self,
        config: ServerConfig,
        store: ContentStore,
        reader: Optional[AssetReader] = None,
    ):
        """
        Args:
            config: Validated before anything is created.
            store: The loaded pages.
            reader: Asset access; defaults to config.content_path.

        Raises:
            ValueError: If the configuration is invalid.
        """
        config.validate()
        self.config = config
        self.store = store
        self.reader = reader or AssetReader(config.content_path)

        self.pipeline = RequestPipeline(store, self.reader)
        self._middleware = MiddlewarePipeline().add(
            AccessLogMiddleware(log_format=config.access_log_format)
        )

        self._socket_server = SocketServer(config)
        self._thread_pool = ThreadPool(
            workers=config.workers,
            max_workers=max(config.workers, config.max_workers),
            queue_size=config.queue_size,
            idle_timeout=config.worker_idle_timeout,
        )
        self._parser = RequestParser(max_request_size=config.max_request_size)

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run one request through middleware and pipeline."""
        if self._handler is None:
            self._handler = self._middleware.wrap(self.pipeline.handle)
        return self._handler(request)

    def run(self):
        """Start serving. Blocks until stop() or a shutdown signal."""
        configure_logging(self.config.log_level)

        self._handler = self._middleware.wrap(self.pipeline.handle)
        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Serving {len(self.store)} pages from {self.config.content_path} "
            f"with {self._thread_pool.min_workers}-{self._thread_pool.max_workers} workers"
        )
        logger.debug(f"Pages: {', '.join(self.store.uris)}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask run() to return. Callable from any thread."""
        self._socket_server.shutdown()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_listening(timeout)

    def _shutdown(self):
        """
        Drain the worker pool.

        A failure here leaves threads in an unknown state, so the process
        exits immediately instead of hanging.
        """
        logger.info("Shutting down server...")
        self._running = False
        try:
            self._thread_pool.shutdown(wait=True, timeout=SHUTDOWN_TIMEOUT)
        except Exception as e:
            logger.critical(f"Shutdown failed, forcing exit: {e}", exc_info=True)
            os._exit(1)
        logger.info("Server stopped")

    def _handle_connection(self, conn: Connection):
        """Hand an accepted connection to a worker, or turn it away."""
        if self._thread_pool.submit(self._process_connection, (conn,)):
            return

        logger.warning(
            f"[{conn.id}] All {self._thread_pool.size} workers busy and queue full, "
            f"rejecting {conn.client_ip}"
        )
        response = HTTPResponse(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            headers={
                "Connection": "close",
                "Content-Type": ContentType.PLAIN.header_value,
            },
            body=b"Service unavailable.",
        )
        conn.send_response(response.to_bytes(self.config.server_name))
        # On the accept thread: never wait for the client here
        conn.close(drain=False)

    def _process_connection(self, conn: Connection):
        """Serve requests on one connection until it closes (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    logger.debug(f"[{conn.id}] No request within {conn.timeout}s")
                    break
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] Malformed request from {conn.client_ip}: {e}")
                    break

                self._log_request(conn, request)
                response = self._respond(conn, request)

                keep_alive = (
                    request.is_keep_alive
                    and self.config.keep_alive
                    and self._running
                )
                if keep_alive:
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break
                if not keep_alive:
                    break
                conn.set_keep_alive()

    def _respond(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self.handle(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Unhandled error for {request.target}: {e}")
            return text_response(
                request, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error."
            )

    @staticmethod
    def _log_request(conn: Connection, request: HTTPRequest):
        logger.debug(
            f"[{conn.id}] {request.method} {request.target} {request.version} "
            f"from {conn.client_ip}:{conn.client_port}"
        )
        if logger.isEnabledFor(logging.DEBUG):
            for name, value in request.headers.items():
                logger.debug(f"[{conn.id}]   {name}: {value}")
            logger.debug(f"[{conn.id}] Body: {len(request.body)} bytes")
