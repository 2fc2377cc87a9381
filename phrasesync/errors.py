"""
Exceptions raised by phrasesync.
"""


class PhraseSyncError(Exception):
    """Base exception for phrasesync operations."""


class TransportError(PhraseSyncError):
    """Raised when the remote authority cannot be reached or rejects a request."""


class StoreError(PhraseSyncError):
    """Raised when the local replica cannot be read or written."""


class MalformedDataError(PhraseSyncError):
    """Raised when stored or received data does not have the expected shape."""
