"""
DropForge - Collection Registry

This module provides the registry adapter over the ledger: collection creation,
snapshot reads (record plus manifest), creator listings, mint call construction
and a TTL snapshot cache that is refetched rather than patched after mutations.
"""

import logging
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, List, Optional

from blobstore.base import BlobStore
from blobstore.exceptions import BlobNotFoundError
from ledger.client import Ledger, TransactionSigner
from ledger.transactions import TransactionBlock

from .exceptions import DecodeError, ManifestUnavailableError, NotFoundError, RegistryError
from .schema import (
    Collection, CollectionDraft, CollectionSnapshot, CollectionSummary, Manifest,
    summaries_for_creator
)


@dataclass
class ContractConfig:
    """Location of the collection contract on the ledger."""
    package_id: str
    registry_id: Optional[str] = None
    module: str = "dropforge"

    def target(self, function: str) -> str:
        return f"{self.package_id}::{self.module}::{function}"

    @property
    def collection_type_suffix(self) -> str:
        return f"::{self.module}::Collection"

    @property
    def created_event_type(self) -> str:
        return f"{self.package_id}::{self.module}::CollectionCreated"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ContractConfig':
        """Create from the `contract` section of the loaded configuration."""
        package_id = config.get("package_id")
        if not package_id:
            raise ValueError("contract.package_id is not configured")
        return cls(
            package_id=package_id,
            registry_id=config.get("registry_id"),
            module=config.get("module", "dropforge")
        )


class CacheEntry:
    """Cache entry with TTL support."""

    def __init__(self, value: Any, ttl_seconds: float = 30.0):
        self.value = value
        self.created_at = time.time()
        self.ttl_seconds = ttl_seconds

    def is_expired(self) -> bool:
        """Check if cache entry has expired."""
        return time.time() - self.created_at > self.ttl_seconds


class SnapshotCache:
    """Thread-safe snapshot cache with TTL support."""

    def __init__(self, default_ttl: float = 30.0):
        self.default_ttl = default_ttl
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = RLock()

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry and not entry.is_expired():
                return entry.value
            elif entry:
                del self._cache[key]
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._cache[key] = CacheEntry(value, ttl or self.default_ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class CollectionRegistry:
    """Create and read collections on the ledger."""

    def __init__(
        self,
        ledger: Ledger,
        blob_store: BlobStore,
        contract: ContractConfig,
        cache_ttl: float = 30.0,
        enable_cache: bool = True
    ):
        self.ledger = ledger
        self.blob_store = blob_store
        self.contract = contract
        self.cache = SnapshotCache(cache_ttl) if enable_cache else None
        self.logger = logging.getLogger(__name__)

    # Creation

    def create_transaction(self, draft: CollectionDraft, manifest_ref: str,
                           sender: Optional[str] = None) -> TransactionBlock:
        """Build the create_collection call."""
        if not self.contract.registry_id:
            raise RegistryError("Registry object id is not configured")
        if not manifest_ref:
            raise ValueError("Manifest reference is required")

        tx = TransactionBlock(sender=sender)
        tx.move_call(
            self.contract.target("create_collection"),
            [
                tx.object(self.contract.registry_id),
                tx.pure_string(draft.name),
                tx.pure_string(draft.description),
                tx.pure_u64(draft.supply_cap),
                tx.pure_u16(draft.royalty_bps),
                tx.pure_string(manifest_ref),
                tx.pure_u64(draft.price),
            ]
        )
        return tx

    async def create(self, draft: CollectionDraft, manifest_ref: str,
                     signer: TransactionSigner) -> str:
        """
        Create a collection and wait until it is final.

        Returns:
            New collection id

        Raises:
            SubmissionError: Network or signing failure
            RejectionError: Ledger declined the transaction
            DecodeError: Final transaction does not reveal the collection id
        """
        tx = self.create_transaction(draft, manifest_ref, sender=signer.address)
        self.logger.info(f"Creating collection '{draft.name}' with manifest {manifest_ref}")

        receipt = await self.ledger.execute(tx, signer)

        for event in receipt.events_of_type(f"::{self.contract.module}::CollectionCreated"):
            collection_id = (event.get("parsedJson") or {}).get("collection_id")
            if collection_id:
                self.logger.info(f"Collection {collection_id} created in {receipt.digest}")
                return collection_id

        created = receipt.created_objects(self.contract.collection_type_suffix)
        if created:
            self.logger.info(f"Collection {created[0]} created in {receipt.digest}")
            return created[0]

        raise DecodeError(f"Transaction {receipt.digest} did not create a collection")

    # Reads

    async def read_collection(self, collection_id: str) -> Collection:
        """Read the collection record only."""
        data = await self.ledger.get_object(collection_id)
        if data is None:
            raise NotFoundError(collection_id)
        return Collection.from_object_data(data)

    async def load_manifest(self, manifest_ref: str) -> Manifest:
        """
        Fetch and parse a manifest document.

        Raises:
            ManifestUnavailableError: Blob no longer retrievable
            BlobNetworkError: Transient failure
            DecodeError: Not a JSON array of URLs
        """
        url = self.blob_store.url_for(manifest_ref)
        try:
            document = await self.blob_store.fetch(url)
        except BlobNotFoundError:
            self.logger.warning(f"Manifest {manifest_ref} is no longer retrievable")
            raise ManifestUnavailableError(manifest_ref, url)
        return Manifest.from_json(document)

    async def read(self, collection_id: str) -> CollectionSnapshot:
        """Read a collection snapshot, served from cache while fresh."""
        if self.cache:
            cached = self.cache.get(collection_id)
            if cached is not None:
                return cached

        collection = await self.read_collection(collection_id)
        manifest = await self.load_manifest(collection.manifest_ref)
        snapshot = CollectionSnapshot(collection=collection, manifest=manifest)

        if snapshot.manifest_mismatch:
            self.logger.warning(
                f"Collection {collection_id} manifest has {len(manifest)} entries "
                f"for a supply cap of {collection.supply_cap}"
            )

        if self.cache:
            self.cache.set(collection_id, snapshot)
        return snapshot

    async def refresh(self, collection_id: str) -> CollectionSnapshot:
        """Discard any cached snapshot and read again."""
        self.invalidate(collection_id)
        return await self.read(collection_id)

    def invalidate(self, collection_id: str) -> None:
        if self.cache:
            self.cache.invalidate(collection_id)

    async def list_by_creator(self, creator: str) -> List[CollectionSummary]:
        """Collections created by an account, newest first."""
        events = await self.ledger.query_events(self.contract.created_event_type)
        return summaries_for_creator(events, creator)

    # Redemption

    def mint_transaction(self, collection: Collection, label: str, asset_url: str,
                         recipient: str) -> TransactionBlock:
        """Build a mint_nft call paying exactly the collection price."""
        tx = TransactionBlock(sender=recipient)
        [payment] = tx.split_coins(tx.gas, [collection.price])
        tx.move_call(
            self.contract.target("mint_nft"),
            [
                tx.object(collection.id),
                tx.pure_string(label),
                tx.pure_string(collection.description),
                tx.pure_string(asset_url),
                payment,
                tx.pure_address(recipient),
            ]
        )
        return tx
