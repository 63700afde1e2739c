"""
DropForge - Registry Exceptions

This module defines exceptions raised while creating and reading collections.
"""

from typing import Optional


class RegistryError(Exception):
    """Base registry exception."""
    pass


class NotFoundError(RegistryError):
    """Collection id does not resolve on the ledger."""
    
    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Collection {collection_id} not found")


class DecodeError(RegistryError):
    """Stored record or manifest has an unexpected shape."""
    pass


class ManifestUnavailableError(RegistryError):
    """The manifest document can no longer be retrieved from the blob store."""
    
    USER_MESSAGE = (
        "Collection data has expired on Walrus. The storage period has ended. "
        "Please contact the creator to refresh the collection."
    )
    
    def __init__(self, manifest_ref: str, url: Optional[str] = None):
        self.manifest_ref = manifest_ref
        self.url = url
        super().__init__(self.USER_MESSAGE)
