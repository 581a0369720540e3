"""
pytest configuration and fixtures.
"""

import gzip
import json
import logging
import socket
import threading
from pathlib import Path

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from homepage import HomepageServer, ServerConfig
from homepage.content import AssetReader, ContentStore
from homepage.http import HTTPRequest
from homepage.pipeline import RequestPipeline


ABOUT_HTML = b"<html><body><h1>About</h1><p>Hello from the about page.</p></body></html>"

MANIFEST = [
    {"uri": "/", "text": "hello", "etag": "v1", "contentType": "plain"},
    {
        "uri": "/about",
        "file": "about.html",
        "gzip": "about.html.gz",
        "etag": "a7",
        "contentType": "text/html",
    },
    {"uri": "/notes", "file": "notes.md", "contentType": "markdown"},
    {
        "uri": "/app",
        "text": "<script src='/app.js'></script>",
        "contentType": "html",
        "scriptSrc": "self",
    },
    {"uri": "/broken", "file": "missing.html", "contentType": "html"},
    {"uri": "/über", "text": "umlaut", "contentType": "plain"},
]


@pytest.fixture(autouse=True)
def restore_log_level():
    """configure_logging() sets the "homepage" level; undo it per test."""
    package_logger = logging.getLogger("homepage")
    level = package_logger.level
    yield
    package_logger.setLevel(level)


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """A content directory with pages.json and its assets."""
    (tmp_path / "about.html").write_bytes(ABOUT_HTML)
    (tmp_path / "about.html.gz").write_bytes(gzip.compress(ABOUT_HTML))
    (tmp_path / "notes.md").write_text("# Notes\n\n- one\n- two\n", encoding="utf-8")
    (tmp_path / "pages.json").write_text(json.dumps(MANIFEST), encoding="utf-8")
    return tmp_path


@pytest.fixture
def store(content_dir: Path) -> ContentStore:
    return ContentStore.load(content_dir / "pages.json")


@pytest.fixture
def reader(content_dir: Path) -> AssetReader:
    return AssetReader(content_dir)


@pytest.fixture
def pipeline(store: ContentStore, reader: AssetReader) -> RequestPipeline:
    return RequestPipeline(store, reader)


@pytest.fixture
def make_request():
    """Factory for HTTPRequest objects with lower-cased header names."""
    def _make(
        target: str = "/",
        method: str = "GET",
        version: str = "HTTP/1.1",
        headers: dict = None,
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            target=target,
            version=version,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 50000),
        )

    return _make


class RunningServer:
    """Runs a HomepageServer in a background thread."""

    def __init__(self, server: HomepageServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def server_factory(content_dir: Path, store: ContentStore):
    """
    Start live servers on free ports; all are stopped after the test.

        srv = server_factory(keep_alive=False)
    """
    started = []

    def _start(**overrides) -> RunningServer:
        settings = dict(
            host="127.0.0.1",
            port=0,
            content_path=content_dir,
            workers=2,
            timeout=5.0,
            keep_alive_timeout=1.0,
            log_level="WARNING",
        )
        settings.update(overrides)
        srv = RunningServer(HomepageServer(ServerConfig(**settings), store))
        srv.start()
        started.append(srv)
        return srv

    yield _start

    for srv in started:
        srv.stop()


@pytest.fixture
def running_server(server_factory) -> RunningServer:
    """A live server serving the test content directory."""
    return server_factory()
