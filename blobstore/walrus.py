"""
DropForge - Walrus Blob Store Client

This module provides the Walrus HTTP integration used for collection assets and
manifest documents: uploads go through a publisher, reads go through an
aggregator. Reads are retried with capped exponential backoff, uploads never are.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import BlobInfo, BlobStore, sha256_hex
from .exceptions import BlobNetworkError, BlobNotFoundError, BlobUploadError


DEFAULT_PUBLISHER_URL = "https://publisher.walrus-testnet.walrus.space"
DEFAULT_AGGREGATOR_URL = "https://aggregator.walrus-testnet.walrus.space"


@dataclass
class WalrusConfig:
    """Walrus publisher/aggregator configuration."""

    publisher_url: str = DEFAULT_PUBLISHER_URL
    aggregator_url: str = DEFAULT_AGGREGATOR_URL
    epochs: int = 5

    # Timeouts in seconds
    upload_timeout: int = 120
    read_timeout: int = 30

    # Retry configuration (reads only)
    max_retries: int = 3
    backoff_factor: float = 0.5
    max_workers: int = 4

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.epochs < 1:
            raise ValueError("Storage epochs must be at least 1")
        if not self.publisher_url or not self.aggregator_url:
            raise ValueError("Both publisher and aggregator URLs are required")

    def blobs_endpoint(self) -> str:
        """Publisher upload endpoint."""
        return f"{self.publisher_url.rstrip('/')}/v1/blobs"

    def blob_url(self, blob_id: str) -> str:
        """Aggregator read URL for a blob."""
        return f"{self.aggregator_url.rstrip('/')}/v1/blobs/{blob_id}"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'WalrusConfig':
        """Create from the `walrus` section of the loaded configuration."""
        return cls(
            publisher_url=config.get("publisher_url", DEFAULT_PUBLISHER_URL),
            aggregator_url=config.get("aggregator_url", DEFAULT_AGGREGATOR_URL),
            epochs=int(config.get("epochs", 5)),
            upload_timeout=int(config.get("upload_timeout", 120)),
            read_timeout=int(config.get("read_timeout", 30)),
            max_retries=int(config.get("max_retries", 3)),
            backoff_factor=float(config.get("backoff_factor", 0.5)),
            max_workers=int(config.get("max_workers", 4))
        )


def parse_upload_response(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract blob details from a publisher response.

    The publisher answers either with a newly created blob object or with the
    certificate of an identical blob that is already stored.

    Returns:
        Dict with blob_id, newly_created and end_epoch
    """
    if not isinstance(payload, dict):
        raise BlobUploadError(f"Unexpected publisher response: {payload!r}")

    if "newlyCreated" in payload:
        blob_object = payload["newlyCreated"].get("blobObject", {})
        blob_id = blob_object.get("blobId")
        storage = blob_object.get("storage") or {}
        newly_created = True
        end_epoch = storage.get("endEpoch")
    elif "alreadyCertified" in payload:
        certified = payload["alreadyCertified"]
        blob_id = certified.get("blobId")
        newly_created = False
        end_epoch = certified.get("endEpoch")
    else:
        raise BlobUploadError(f"Unexpected publisher response keys: {sorted(payload)}")

    if not blob_id:
        raise BlobUploadError("Publisher response did not contain a blob id")

    return {"blob_id": blob_id, "newly_created": newly_created, "end_epoch": end_epoch}


class WalrusBlobStore(BlobStore):
    """Walrus storage over the publisher and aggregator HTTP APIs."""

    def __init__(self, config: Optional[WalrusConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or WalrusConfig()
        self.logger = logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                            thread_name_prefix="walrus")

        # Statistics
        self._stats = {
            "uploads": 0,
            "upload_failures": 0,
            "reads": 0,
            "read_failures": 0,
            "not_found": 0
        }
        self._stats_lock = threading.Lock()

        if session is not None:
            self.session = session
        else:
            self.session = requests.Session()
            retry_strategy = Retry(
                total=self.config.max_retries,
                backoff_factor=self.config.backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET", "HEAD"]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    async def _run(self, func, *args, **kwargs):
        """Run a blocking HTTP call on the executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args, **kwargs))

    def url_for(self, blob_id: str) -> str:
        """Resolve a blob id to its aggregator URL."""
        if not blob_id:
            raise ValueError("Blob id must not be empty")
        return self.config.blob_url(blob_id)

    async def upload(self, data: bytes, content_type: Optional[str] = None) -> BlobInfo:
        """Upload bytes to the publisher."""
        return await self._run(self.upload_sync, data, content_type)

    async def exists(self, url: str) -> bool:
        """HEAD the blob URL."""
        return await self._run(self.exists_sync, url)

    async def fetch(self, url: str) -> bytes:
        """GET the blob URL."""
        return await self._run(self.fetch_sync, url)

    def upload_sync(self, data: bytes, content_type: Optional[str] = None) -> BlobInfo:
        """
        Store a payload for the configured number of epochs.

        Args:
            data: Payload bytes
            content_type: MIME type recorded on the returned BlobInfo

        Returns:
            BlobInfo for the stored blob
        """
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Blob payload must be bytes")

        endpoint = self.config.blobs_endpoint()
        headers = {"Content-Type": content_type or "application/octet-stream"}

        try:
            response = self.session.put(
                endpoint,
                params={"epochs": self.config.epochs},
                data=bytes(data),
                headers=headers,
                timeout=self.config.upload_timeout
            )
        except requests.exceptions.RequestException as e:
            self._count("upload_failures")
            self.logger.error(f"Upload to {endpoint} failed: {e}")
            raise BlobNetworkError(endpoint, str(e))

        if response.status_code not in (200, 201):
            self._count("upload_failures")
            raise BlobUploadError(
                f"Publisher returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            details = parse_upload_response(response.json())
        except ValueError as e:
            self._count("upload_failures")
            raise BlobUploadError(f"Publisher returned invalid JSON: {e}")

        self._count("uploads")
        self.logger.info(
            f"Stored blob {details['blob_id']} ({len(data)} bytes, "
            f"{'new' if details['newly_created'] else 'already certified'})"
        )

        return BlobInfo(
            blob_id=details["blob_id"],
            size=len(data),
            content_type=content_type or "application/octet-stream",
            sha256=sha256_hex(bytes(data)),
            newly_created=details["newly_created"],
            end_epoch=details["end_epoch"]
        )

    def exists_sync(self, url: str) -> bool:
        """Check blob availability with a HEAD request."""
        try:
            response = self.session.head(url, timeout=self.config.read_timeout,
                                         allow_redirects=True)
        except requests.exceptions.RequestException as e:
            self._count("read_failures")
            raise BlobNetworkError(url, str(e))

        self._count("reads")
        if response.status_code == 404:
            self._count("not_found")
        return 200 <= response.status_code < 300

    def fetch_sync(self, url: str) -> bytes:
        """Retrieve blob content."""
        try:
            response = self.session.get(url, timeout=self.config.read_timeout)
        except requests.exceptions.RequestException as e:
            self._count("read_failures")
            self.logger.warning(f"Blob fetch failed for {url}: {e}")
            raise BlobNetworkError(url, str(e))

        if response.status_code == 404:
            self._count("not_found")
            raise BlobNotFoundError(url)

        if not 200 <= response.status_code < 300:
            self._count("read_failures")
            raise BlobNetworkError(url, f"HTTP {response.status_code}: {response.reason}",
                                   status_code=response.status_code)

        self._count("reads")
        self.logger.debug(f"Retrieved {len(response.content)} bytes from {url}")
        return response.content

    def get_statistics(self) -> Dict[str, Any]:
        """Get client statistics."""
        with self._stats_lock:
            stats = self._stats.copy()
        return {
            "stats": stats,
            "config": {
                "publisher_url": self.config.publisher_url,
                "aggregator_url": self.config.aggregator_url,
                "epochs": self.config.epochs
            }
        }

    def close(self):
        """Close connections."""
        self.session.close()
        self._executor.shutdown(wait=False)
