"""
DropForge - Collection Launcher

Publishes a creator's assets and registers the collection. Verification
failures surface before any creation transaction is submitted.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ledger.client import TransactionSigner
from registry.manager import CollectionRegistry
from registry.schema import CollectionDraft

from .exceptions import PreconditionError
from .manifest import Asset, ManifestBuilder


@dataclass(frozen=True)
class LaunchResult:
    collection_id: str
    manifest_ref: str

    def to_dict(self):
        return {"collection_id": self.collection_id, "manifest_ref": self.manifest_ref}


class CollectionLauncher:
    """Publish-then-create for new collections."""

    def __init__(self, builder: ManifestBuilder, registry: CollectionRegistry):
        self.builder = builder
        self.registry = registry
        self.logger = logging.getLogger(__name__)

    async def launch(self, draft: CollectionDraft, assets: Sequence[Asset],
                     signer: Optional[TransactionSigner]) -> LaunchResult:
        """
        Publish assets and create the collection.

        Raises:
            PreconditionError: No wallet, no registry object, or no assets
            UploadVerificationError: An asset failed verification
            ManifestIntegrityError: The manifest did not round-trip
            SubmissionError: Creation could not be submitted
            RejectionError: The ledger declined creation
        """
        if signer is None or not getattr(signer, "address", None):
            raise PreconditionError("Please connect your wallet first")
        if not self.registry.contract.registry_id:
            raise PreconditionError("Registry object id is not configured")
        if not assets:
            raise PreconditionError("Please upload at least one image")
        if len(assets) != draft.supply_cap:
            self.logger.warning(
                f"Publishing {len(assets)} assets for a supply cap of {draft.supply_cap}"
            )

        manifest_ref = await self.builder.publish(assets)
        collection_id = await self.registry.create(draft, manifest_ref, signer)

        self.logger.info(f"Launched collection {collection_id} ({draft.name})")
        return LaunchResult(collection_id=collection_id, manifest_ref=manifest_ref)
