"""
Exception hierarchy for the link cache service.

Cache failures never reach callers of the cache access layer; store failures
are converted to "absent" / ``False`` by the link data service.
"""

from typing import Optional


class LinkCacheError(Exception):
    """Base class for all errors raised inside the package"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class CacheUnavailableError(LinkCacheError):
    """The key-value cache store could not serve a request"""


class StoreError(LinkCacheError):
    """The durable record store failed"""
