"""
DropForge - Blob Store Interface

This module defines the content-addressed blob store capability consumed by the
publishing and redemption pipeline: upload bytes, resolve a blob id to a URL,
and read back through plain HTTP semantics.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class BlobInfo:
    """Result of a successful blob upload."""
    
    blob_id: str
    size: int
    content_type: str = "application/octet-stream"
    sha256: Optional[str] = None
    newly_created: bool = True
    end_epoch: Optional[int] = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "blob_id": self.blob_id,
            "size": self.size,
            "content_type": self.content_type,
            "newly_created": self.newly_created,
            "uploaded_at": self.uploaded_at.isoformat()
        }
        if self.sha256:
            result["sha256"] = self.sha256
        if self.end_epoch is not None:
            result["end_epoch"] = self.end_epoch
        return result


def sha256_hex(data: bytes) -> str:
    """Hex SHA-256 digest of a payload."""
    return hashlib.sha256(data).hexdigest()


class BlobStore(ABC):
    """Abstract base class for blob storage backends."""
    
    @abstractmethod
    async def upload(self, data: bytes, content_type: Optional[str] = None) -> BlobInfo:
        """Upload a payload and return its blob info."""
        pass
    
    @abstractmethod
    def url_for(self, blob_id: str) -> str:
        """Resolve a blob id to a retrievable URL."""
        pass
    
    @abstractmethod
    async def exists(self, url: str) -> bool:
        """
        Lightweight existence check against a blob URL.
        
        Returns False when the store answers that the blob is absent and raises
        BlobNetworkError when the store cannot be reached.
        """
        pass
    
    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """
        Fetch blob content.
        
        Raises:
            BlobNotFoundError: The blob does not resolve (expired or never stored)
            BlobNetworkError: Transport failure or unexpected status
        """
        pass
    
    async def fetch_blob(self, blob_id: str) -> bytes:
        """Fetch blob content by id."""
        return await self.fetch(self.url_for(blob_id))
