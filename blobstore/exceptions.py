"""
DropForge - Blob Store Exceptions

This module defines custom exceptions for blob upload and retrieval operations.
"""

from typing import Optional


class BlobStoreError(Exception):
    """Base exception for blob store errors."""
    pass


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob does not resolve (404), usually because its storage period ended."""
    
    def __init__(self, url: str, message: Optional[str] = None):
        self.url = url
        super().__init__(message or f"Blob not found: {url}")


class BlobNetworkError(BlobStoreError):
    """Raised for transient transport failures and unexpected HTTP status codes."""
    
    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Blob request to {url} failed: {reason}")


class BlobUploadError(BlobStoreError):
    """Raised when the publisher rejects an upload or returns an unusable response."""
    pass
