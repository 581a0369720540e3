"""
=============================================================================
EXCEPTIONS
=============================================================================

Every failure the server knows how to name lives here.

    HomepageError
    ├── ManifestError       pages.json unreadable or invalid (fatal at startup)
    └── ContentReadError    an asset file could not be read (500 per request)

HTTPParseError is deliberately NOT here: it belongs to the wire protocol
and lives next to the request parser in http/request.py.

=============================================================================
"""

from typing import Optional


class HomepageError(Exception):
    """Base class for all homepage errors."""


class ManifestError(HomepageError):
    """
    The content manifest could not be loaded.

    Raised once, at startup. The process cannot serve anything without
    its pages, so __main__ turns this into a non-zero exit.

    Attributes:
        index: Position of the offending entry in the manifest array,
               or None when the whole file is at fault.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"page #{index}: {message}"
        super().__init__(message)
        self.index = index


class ContentReadError(HomepageError):
    """
    An asset referenced by the manifest could not be read.

    Raised per request by AssetReader. The pipeline converts it into a
    500 response; it never reaches the worker loop.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot read asset '{path}': {reason}")
        self.path = path
        self.reason = reason
