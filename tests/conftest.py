"""
Pytest configuration and fixtures for DropForge tests.

Provides in-memory fakes of the blob store, the ledger (simulating the
collection contract) and a wallet signer.
"""

import asyncio
import hashlib
import json
from typing import Any, Dict, List, Optional, Set

import pytest

from blobstore.base import BlobInfo, BlobStore
from blobstore.exceptions import BlobNetworkError, BlobNotFoundError, BlobUploadError
from ledger.client import Ledger, TransactionReceipt, TransactionSigner
from ledger.exceptions import FinalityTimeoutError, RejectionError, SubmissionError
from ledger.transactions import (
    CommandResult, MoveCall, ObjectArg, PureArg, PureType, SplitCoins, TransactionBlock
)
from nft.redemption import RedemptionCoordinator
from registry.manager import CollectionRegistry, ContractConfig


PACKAGE_ID = "0x" + "1" * 64
REGISTRY_ID = "0x" + "2" * 64
CREATOR = "0x" + "c" * 64
BUYER = "0x" + "b" * 64
AGGREGATOR = "https://aggregator.test"


class FakeBlobStore(BlobStore):
    """In-memory blob store with failure injection."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.uploads: List[Dict[str, Any]] = []
        self.fetches: List[str] = []
        self.exists_checks: List[str] = []

        # Upload call numbers (0-based) that fail outright
        self.fail_uploads: Set[int] = set()
        # Upload call numbers whose blob is acknowledged but never becomes retrievable
        self.drop_uploads: Set[int] = set()
        # Applied to manifest documents before they are stored
        self.rewrite_json = None
        self.offline = False

    def put(self, data: bytes) -> str:
        """Store a blob synchronously (test setup)."""
        blob_id = hashlib.sha256(data).hexdigest()[:32] + f"-{len(self.blobs)}"
        self.blobs[blob_id] = data
        return blob_id

    def expire(self, blob_id: str):
        self.blobs.pop(blob_id, None)

    def url_for(self, blob_id: str) -> str:
        if not blob_id:
            raise ValueError("Blob id must not be empty")
        return f"{AGGREGATOR}/v1/blobs/{blob_id}"

    def _blob_id(self, url: str) -> str:
        return url.rsplit("/", 1)[-1]

    async def upload(self, data: bytes, content_type: Optional[str] = None) -> BlobInfo:
        call = len(self.uploads)
        self.uploads.append({"data": data, "content_type": content_type})

        if call in self.fail_uploads:
            raise BlobUploadError("Publisher returned HTTP 500")

        if content_type == "application/json" and self.rewrite_json:
            data = self.rewrite_json(data)

        blob_id = f"blob-{call}"
        if call not in self.drop_uploads:
            self.blobs[blob_id] = data

        return BlobInfo(blob_id=blob_id, size=len(data),
                        content_type=content_type or "application/octet-stream")

    async def exists(self, url: str) -> bool:
        self.exists_checks.append(url)
        if self.offline:
            raise BlobNetworkError(url, "connection refused")
        return self._blob_id(url) in self.blobs

    async def fetch(self, url: str) -> bytes:
        self.fetches.append(url)
        if self.offline:
            raise BlobNetworkError(url, "connection refused")
        blob_id = self._blob_id(url)
        if blob_id not in self.blobs:
            raise BlobNotFoundError(url)
        return self.blobs[blob_id]

    @property
    def json_uploads(self) -> List[Dict[str, Any]]:
        return [u for u in self.uploads if u["content_type"] == "application/json"]


class FakeSigner(TransactionSigner):
    """Wallet that records what it signs."""

    def __init__(self, address: str = BUYER, error: Optional[Exception] = None):
        self._address = address
        self.error = error
        self.signed: List[TransactionBlock] = []

    @property
    def address(self) -> str:
        return self._address

    async def sign_and_execute(self, transaction: TransactionBlock) -> Dict[str, Any]:
        self.signed.append(transaction)
        if self.error:
            raise self.error
        return {}


def _text(arg: PureArg) -> str:
    assert arg.type == PureType.BYTES
    return bytes(arg.value).decode("utf-8")


def _u64(arg: PureArg) -> int:
    assert arg.type == PureType.U64
    return int(arg.value)


class FakeLedger(Ledger):
    """
    Ledger simulating the collection contract.

    create_collection stores a record and emits CollectionCreated; mint_nft
    checks the exact payment and the supply cap and advances minted_count.
    """

    def __init__(self, package_id: str = PACKAGE_ID):
        self.package_id = package_id
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.events: List[Dict[str, Any]] = []
        self.receipts: Dict[str, TransactionReceipt] = {}
        self.submitted: List[TransactionBlock] = []
        self.minted: List[Dict[str, Any]] = []
        self.object_reads: List[str] = []

        self.reject_next: Optional[str] = None
        self.finality_timeout_next = False
        self.fail_reads_after_submit = False
        # When set, submit waits on it so tests can interleave evaluations
        self.gate: Optional[asyncio.Event] = None
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return "0x" + f"{self._counter:x}".rjust(64, "a")

    def add_collection(self, name: str = "Sunsets", supply_cap: int = 4, minted_count: int = 0,
                       price: int = 1_000_000_000, manifest_ref: str = "manifest",
                       creator: str = CREATOR, description: str = "Four sunsets",
                       royalty_bps: int = 500) -> str:
        """Seed a collection record directly (test setup)."""
        collection_id = self._next_id()
        self.objects[collection_id] = {
            "name": name,
            "description": description,
            "creator": creator,
            "max_supply": str(supply_cap),
            "minted_count": str(minted_count),
            "mint_price": str(price),
            "royalty_bps": royalty_bps,
            "base_uri": manifest_ref
        }
        self.events.append({
            "type": f"{self.package_id}::dropforge::CollectionCreated",
            "parsedJson": {"collection_id": collection_id, "creator": creator, "name": name}
        })
        return collection_id

    def minted_count(self, collection_id: str) -> int:
        return int(self.objects[collection_id]["minted_count"])

    # Ledger capability

    async def submit(self, transaction: TransactionBlock, signer: TransactionSigner) -> str:
        try:
            await signer.sign_and_execute(transaction)
        except Exception as e:
            raise SubmissionError(str(e)) from e

        if self.gate is not None:
            await self.gate.wait()

        self.submitted.append(transaction)
        self._counter += 1
        digest = f"digest-{self._counter}"

        if self.reject_next:
            reason, self.reject_next = self.reject_next, None
            raise RejectionError(reason, digest)

        call = transaction.move_calls()[0]
        if call.target.endswith("::dropforge::create_collection"):
            receipt = self._create(digest, call, signer.address)
        elif call.target.endswith("::dropforge::mint_nft"):
            receipt = self._mint(digest, transaction, call)
        else:
            raise RejectionError(f"unknown function {call.target}", digest)

        self.receipts[digest] = receipt
        return digest

    def _create(self, digest: str, call: MoveCall, creator: str) -> TransactionReceipt:
        registry, name, description, max_supply, royalty, manifest, price = call.arguments
        assert isinstance(registry, ObjectArg)

        collection_id = self._next_id()
        self.objects[collection_id] = {
            "name": list(name.value),
            "description": list(description.value),
            "creator": creator,
            "max_supply": max_supply.value,
            "minted_count": "0",
            "mint_price": price.value,
            "royalty_bps": royalty.value,
            "base_uri": list(manifest.value)
        }
        event = {
            "type": f"{self.package_id}::dropforge::CollectionCreated",
            "parsedJson": {"collection_id": collection_id, "creator": creator,
                           "name": _text(name)}
        }
        self.events.append(event)
        return TransactionReceipt(
            digest=digest, success=True, events=[event],
            object_changes=[{"type": "created", "objectId": collection_id,
                             "objectType": f"{self.package_id}::dropforge::Collection"}]
        )

    def _mint(self, digest: str, transaction: TransactionBlock, call: MoveCall) -> TransactionReceipt:
        collection_arg, name, description, url, payment, recipient = call.arguments
        record = self.objects.get(collection_arg.object_id)
        if record is None:
            raise RejectionError("collection does not exist", digest)

        assert isinstance(payment, CommandResult)
        split = transaction.commands[payment.command_index]
        assert isinstance(split, SplitCoins)
        paid = _u64(split.amounts[payment.result_index])

        if paid != int(record["mint_price"]):
            raise RejectionError("EIncorrectPayment", digest)
        if int(record["minted_count"]) >= int(record["max_supply"]):
            raise RejectionError("ESoldOut", digest)

        record["minted_count"] = str(int(record["minted_count"]) + 1)
        self.minted.append({
            "collection_id": collection_arg.object_id,
            "name": _text(name),
            "description": _text(description),
            "url": _text(url),
            "recipient": recipient.value,
            "paid": paid
        })
        return TransactionReceipt(digest=digest, success=True)

    async def wait_for_finality(self, digest: str,
                                timeout: Optional[float] = None) -> TransactionReceipt:
        if self.finality_timeout_next:
            self.finality_timeout_next = False
            raise FinalityTimeoutError(digest, timeout or 60.0)
        return self.receipts[digest]

    async def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        self.object_reads.append(object_id)
        if self.fail_reads_after_submit and self.submitted:
            raise SubmissionError("full node unavailable")
        fields = self.objects.get(object_id)
        if fields is None:
            return None
        return {
            "objectId": object_id,
            "type": f"{self.package_id}::dropforge::Collection",
            "content": {"dataType": "moveObject", "fields": json.loads(json.dumps(fields))}
        }

    async def query_events(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in reversed(self.events) if e["type"] == event_type]


def seed_collection(ledger: FakeLedger, blob_store: FakeBlobStore, size: int = 4,
                    minted_count: int = 0, supply_cap: Optional[int] = None, **kwargs) -> str:
    """Store a manifest of `size` asset blobs and a collection referencing it."""
    urls = [blob_store.url_for(blob_store.put(f"image-{i}".encode())) for i in range(size)]
    manifest_ref = blob_store.put(json.dumps(urls, indent=2).encode())
    return ledger.add_collection(
        supply_cap=size if supply_cap is None else supply_cap,
        minted_count=minted_count,
        manifest_ref=manifest_ref,
        **kwargs
    )


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def contract():
    return ContractConfig(package_id=PACKAGE_ID, registry_id=REGISTRY_ID)


@pytest.fixture
def registry(ledger, blob_store, contract):
    return CollectionRegistry(ledger, blob_store, contract)


@pytest.fixture
def coordinator(registry, ledger):
    return RedemptionCoordinator(registry, ledger)


@pytest.fixture
def buyer():
    return FakeSigner(BUYER)


@pytest.fixture
def creator():
    return FakeSigner(CREATOR)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
