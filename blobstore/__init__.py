"""
DropForge - Blob Storage

Content-addressed storage for collection assets and manifest documents.
"""

from .base import BlobInfo, BlobStore
from .exceptions import BlobNetworkError, BlobNotFoundError, BlobStoreError, BlobUploadError
from .walrus import WalrusBlobStore, WalrusConfig, parse_upload_response

__all__ = [
    "BlobInfo",
    "BlobStore",
    "BlobStoreError",
    "BlobNotFoundError",
    "BlobNetworkError",
    "BlobUploadError",
    "WalrusBlobStore",
    "WalrusConfig",
    "parse_upload_response"
]
