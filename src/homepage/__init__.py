"""
=============================================================================
HOMEPAGE
=============================================================================

A small HTTP/1.x server for a personal homepage. The pages are described
by a pages.json manifest in a content directory and served as-is:

    ~/Contents/
        pages.json          [{"uri": "/", "file": "index.html", ...}, ...]
        index.html
        index.html.gz       optional pre-compressed variant

=============================================================================
PACKAGE LAYOUT
=============================================================================

    content/       manifest loading (ContentStore) and asset reads
    http/          request parsing, response assembly, status codes
    pipeline/      the ordered guards that turn a request into a response
    middleware/    access logging around the pipeline
    core/          sockets, connections, the worker pool
    config.py      ServerConfig
    server.py      HomepageServer, wiring it all together
    __main__.py    command line

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .content import ContentStore
from .errors import ContentReadError, HomepageError, ManifestError
from .server import HomepageServer

__all__ = [
    "HomepageServer",
    "ServerConfig",
    "ContentStore",
    "HomepageError",
    "ManifestError",
    "ContentReadError",
    "__version__",
]
