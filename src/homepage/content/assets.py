"""
=============================================================================
ASSET READER
=============================================================================

Reads the files behind file-backed pages.

Paths in pages.json are relative to the content directory. A manifest
entry such as {"file": "../../etc/passwd"} must not escape it, so every
path is resolved and checked before it is opened:

    content dir:  /srv/contents
    "about.html"        → /srv/contents/about.html      OK
    "css/../about.html" → /srv/contents/about.html      OK
    "../secret"         → /srv/secret                   ContentReadError

Files are read on every request: no in-process cache.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Union

from ..errors import ContentReadError


logger = logging.getLogger(__name__)


class AssetReader:
    """
    Fallible file access rooted at the content directory.

    Usage:
        reader = AssetReader("/srv/contents")
        data = reader.read("about.html.gz")   # bytes, or ContentReadError
    """

    def __init__(self, root_dir: Union[str, Path]):
        # Resolve once so the containment check compares absolute paths
        self.root_dir = Path(root_dir).resolve()

    def resolve(self, relative_path: str) -> Path:
        """
        Map a manifest path to a filesystem path inside root_dir.

        Raises:
            ContentReadError: If the path escapes root_dir.
        """
        full_path = (self.root_dir / relative_path.lstrip("/")).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Asset path escapes content directory: {relative_path}")
            raise ContentReadError(relative_path, "outside content directory") from None
        return full_path

    def read(self, relative_path: str) -> bytes:
        """
        Read an asset's bytes.

        Raises:
            ContentReadError: If the file is missing, unreadable, or outside
                              the content directory.
        """
        path = self.resolve(relative_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ContentReadError(relative_path, e.strerror or str(e)) from e

        logger.debug(f"Read {len(data)} bytes from {path}")
        return data
