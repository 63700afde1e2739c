"""
DropForge - Manifest Publishing

This module turns an ordered set of creator assets into a verified manifest:
every asset is uploaded and checked for existence, the ordered URL list is
uploaded as a JSON document, and that document is read back and compared before
its reference is handed out.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from blobstore.base import BlobStore
from blobstore.exceptions import BlobStoreError
from registry.exceptions import DecodeError
from registry.schema import Manifest

from .exceptions import ManifestIntegrityError, UploadVerificationError


MANIFEST_CONTENT_TYPE = "application/json"


class PublishStage(str, Enum):
    """Publish progress stages."""
    UPLOADING_ASSETS = "uploading_assets"
    BUILDING_MANIFEST = "building_manifest"
    UPLOADING_MANIFEST = "uploading_manifest"
    VERIFYING_MANIFEST = "verifying_manifest"
    VERIFIED = "verified"


@dataclass(frozen=True)
class PublishProgress:
    """Progress notification for a running publish."""
    stage: PublishStage
    message: str
    completed: int = 0
    total: int = 0


@dataclass(frozen=True)
class AssetPayload:
    """A creator asset awaiting upload."""
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'AssetPayload':
        """Load an asset from disk, guessing its MIME type."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        content_type, _ = mimetypes.guess_type(str(path))
        return cls(data=path.read_bytes(), filename=path.name, content_type=content_type)


Asset = Union[bytes, AssetPayload]
ProgressCallback = Callable[[PublishProgress], None]


def _as_payload(asset: Asset) -> AssetPayload:
    if isinstance(asset, AssetPayload):
        return asset
    if isinstance(asset, (bytes, bytearray)):
        return AssetPayload(data=bytes(asset))
    raise TypeError(f"Unsupported asset type: {type(asset).__name__}")


class ManifestBuilder:
    """Uploads assets and publishes their verified manifest."""

    def __init__(self, blob_store: BlobStore,
                 on_progress: Optional[ProgressCallback] = None,
                 max_concurrency: int = 1):
        """
        Initialize manifest builder.

        Args:
            blob_store: Blob store for assets and the manifest document
            on_progress: Optional progress callback
            max_concurrency: Concurrent asset uploads; the manifest keeps input order regardless
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.blob_store = blob_store
        self.on_progress = on_progress
        self.max_concurrency = max_concurrency
        self.logger = logging.getLogger(__name__)

    def _report(self, stage: PublishStage, message: str, completed: int = 0, total: int = 0):
        self.logger.debug(message)
        if self.on_progress:
            self.on_progress(PublishProgress(stage, message, completed, total))

    async def publish(self, assets: Sequence[Asset]) -> str:
        """
        Publish assets and their manifest.

        Args:
            assets: Ordered payloads; position becomes the slot index

        Returns:
            Blob id of the verified manifest document

        Raises:
            UploadVerificationError: An asset failed to upload or verify; nothing else is uploaded
            ManifestIntegrityError: The manifest document did not round-trip
        """
        payloads = [_as_payload(a) for a in assets]
        if not payloads:
            raise ValueError("At least one asset is required")

        total = len(payloads)
        self._report(PublishStage.UPLOADING_ASSETS, "Uploading images to Walrus...", 0, total)

        urls = await self._upload_all(payloads)

        self._report(PublishStage.BUILDING_MANIFEST, "Creating manifest...", total, total)
        manifest = Manifest(urls=tuple(urls))

        self._report(PublishStage.UPLOADING_MANIFEST, "Uploading manifest...", total, total)
        try:
            info = await self.blob_store.upload(manifest.to_json().encode("utf-8"),
                                                MANIFEST_CONTENT_TYPE)
        except BlobStoreError as e:
            raise ManifestIntegrityError(f"Manifest upload failed: {e}") from e
        manifest_ref = info.blob_id

        self._report(PublishStage.VERIFYING_MANIFEST, "Verifying manifest...", total, total)
        await self._verify_round_trip(manifest_ref, manifest)

        self._report(PublishStage.VERIFIED, "All uploads verified!", total, total)
        self.logger.info(f"Published manifest {manifest_ref} with {total} assets")
        return manifest_ref

    async def _upload_all(self, payloads: List[AssetPayload]) -> List[str]:
        total = len(payloads)

        if self.max_concurrency == 1:
            urls = []
            for index, payload in enumerate(payloads):
                self._report(PublishStage.UPLOADING_ASSETS,
                             f"Uploading image {index + 1}/{total}...", index, total)
                urls.append(await self._upload_verified(index, payload))
            return urls

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(index: int, payload: AssetPayload) -> str:
            async with semaphore:
                return await self._upload_verified(index, payload)

        tasks = [asyncio.ensure_future(bounded(i, p)) for i, p in enumerate(payloads)]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        # Tasks are in input order, so the first failure has the lowest index
        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return [task.result() for task in tasks]

    async def _upload_verified(self, index: int, payload: AssetPayload) -> str:
        """Upload one asset, resolve its URL and check that it is retrievable."""
        try:
            info = await self.blob_store.upload(payload.data, payload.content_type)
            url = self.blob_store.url_for(info.blob_id)
            retrievable = await self.blob_store.exists(url)
        except (BlobStoreError, ValueError) as e:
            self.logger.error(f"Failed to upload image {index + 1}: {e}")
            raise UploadVerificationError(index, str(e)) from e

        if not retrievable:
            self.logger.error(f"Image {index + 1} is not retrievable at {url}")
            raise UploadVerificationError(index, f"not retrievable at {url}")

        self.logger.debug(f"Image {index + 1} uploaded as {info.blob_id}")
        return url

    async def _verify_round_trip(self, manifest_ref: str, expected: Manifest) -> None:
        try:
            document = await self.blob_store.fetch(self.blob_store.url_for(manifest_ref))
        except BlobStoreError as e:
            raise ManifestIntegrityError(
                f"Manifest upload verification failed - manifest not accessible: {e}"
            ) from e

        try:
            fetched = Manifest.from_json(document)
        except DecodeError as e:
            raise ManifestIntegrityError(f"Manifest verification failed - {e}") from e

        if len(fetched) != len(expected):
            raise ManifestIntegrityError(
                f"Manifest verification failed - expected {len(expected)} entries, "
                f"found {len(fetched)}"
            )

        for position, (got, want) in enumerate(zip(fetched, expected)):
            if got != want:
                raise ManifestIntegrityError(
                    f"Manifest verification failed - entry {position} is {got!r}, expected {want!r}"
                )
