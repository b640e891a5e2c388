"""
Exception types for icebrowse.

Decode and fetch failures are fatal to the current stats computation but are
reported to callers as "stats unavailable" by the stats service.
"""

from typing import Optional


class IceBrowseError(Exception):
    """Base class for all icebrowse errors"""

    pass


class FormatError(IceBrowseError):
    """Raised when a container file is malformed or truncated"""

    pass


class StorageFetchError(IceBrowseError):
    """Raised when the object store answers a GET with a non-2xx status.

    The status and a prefix of the response body are kept for diagnostics.
    ``status`` is None when the request never produced a response.
    """

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class CacheError(IceBrowseError):
    """Raised by cache implementations when a read or write fails"""

    pass


class CatalogError(IceBrowseError):
    """Raised when the catalog REST service returns a non-2xx response"""

    def __init__(self, message: str, status: Optional[int] = None, path: str = ""):
        super().__init__(message)
        self.status = status
        self.path = path
