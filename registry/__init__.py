"""
DropForge - Collection Registry

Ledger-backed collection records, manifests and snapshots.
"""

from .exceptions import DecodeError, ManifestUnavailableError, NotFoundError, RegistryError
from .manager import CollectionRegistry, ContractConfig, SnapshotCache
from .schema import (
    Collection,
    CollectionDraft,
    CollectionSnapshot,
    CollectionSummary,
    Manifest,
    MIST_PER_SUI
)

__all__ = [
    "Collection",
    "CollectionDraft",
    "CollectionRegistry",
    "CollectionSnapshot",
    "CollectionSummary",
    "ContractConfig",
    "Manifest",
    "SnapshotCache",
    "MIST_PER_SUI",
    "RegistryError",
    "NotFoundError",
    "DecodeError",
    "ManifestUnavailableError"
]
