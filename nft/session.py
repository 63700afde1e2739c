"""
DropForge - Collection Session

Per-page state for a collection detail view: the current snapshot, the
connected wallet, the last error and success messages and the page's
auto-mint. Operations return a value or None and leave a message behind,
so callers branch on ordinary results instead of callbacks.
"""

import logging
from typing import List, Optional

from blobstore.exceptions import BlobStoreError
from ledger.client import TransactionSigner
from ledger.exceptions import LedgerError
from registry.exceptions import ManifestUnavailableError, NotFoundError, RegistryError
from registry.manager import CollectionRegistry
from registry.schema import CollectionSnapshot

from .automint import AutoMintDecision, AutoRedeemer
from .exceptions import PipelineError
from .redemption import RedemptionCoordinator, RedemptionOutcome
from .share import ShareLinkService
from .slots import SlotResolution, SlotResolver


class CollectionSession:
    """State of one collection page."""

    def __init__(self, collection_id: str, registry: CollectionRegistry,
                 coordinator: RedemptionCoordinator,
                 share_service: Optional[ShareLinkService] = None,
                 page_url: Optional[str] = None,
                 signer: Optional[TransactionSigner] = None):
        """
        Initialize collection session.

        Args:
            collection_id: Collection shown on the page
            registry: Registry snapshots are read from
            coordinator: Redemption coordinator for this client
            share_service: Share link service
            page_url: URL the page was opened with; may carry a mint intent
            signer: Wallet connected at load time, if any
        """
        self.collection_id = collection_id
        self.registry = registry
        self.coordinator = coordinator
        self.share_service = share_service or ShareLinkService()
        self.resolver = SlotResolver()
        self.signer = signer
        self.auto_redeemer = AutoRedeemer(page_url, coordinator, self.share_service, self.resolver)
        self.logger = logging.getLogger(__name__)

        self.snapshot: Optional[CollectionSnapshot] = None
        self.error: Optional[str] = None
        self.success: Optional[str] = None
        self.last_auto_mint: Optional[AutoMintDecision] = None

    def _clear_messages(self):
        self.error = None
        self.success = None

    async def load(self) -> Optional[CollectionSnapshot]:
        """Read the collection, then evaluate the page's auto-mint."""
        self._clear_messages()
        try:
            self.snapshot = await self.registry.read(self.collection_id)
        except ManifestUnavailableError as e:
            self.error = e.USER_MESSAGE
            return None
        except NotFoundError:
            self.error = "Collection not found"
            return None
        except (RegistryError, BlobStoreError, LedgerError) as e:
            self.logger.error(f"Failed to load collection {self.collection_id}: {e}")
            self.error = f"Failed to load collection: {e}"
            return None

        await self._auto_mint()
        return self.snapshot

    async def connect(self, signer: TransactionSigner) -> Optional[AutoMintDecision]:
        """Adopt a newly connected wallet and re-run the deferred auto-mint."""
        self.signer = signer
        if self.snapshot is None:
            return None
        self._clear_messages()
        return await self._auto_mint()

    async def _auto_mint(self) -> AutoMintDecision:
        decision = await self.auto_redeemer.evaluate(self.snapshot, self.signer)
        self.last_auto_mint = decision

        if decision.error is not None:
            self.error = decision.message
        elif decision.outcome is not None:
            self._adopt(decision.outcome)
            self.success = decision.message
        elif decision.message:
            # already-minted notices and the connect prompt
            self.error = decision.message
        return decision

    def _adopt(self, outcome: RedemptionOutcome):
        if outcome.snapshot is not None:
            self.snapshot = outcome.snapshot

    async def mint(self, index: int) -> Optional[RedemptionOutcome]:
        """Mint the given slot from the current snapshot."""
        self._clear_messages()
        if self.snapshot is None:
            self.error = "Collection is not loaded"
            return None

        try:
            slot = self.resolver.resolve(self.snapshot, index)
            if not slot.available:
                self.error = f"NFT #{slot.display_number} has already been minted."
                return None
            outcome = await self.coordinator.redeem(self.snapshot, index, slot.asset_url, self.signer)
        except PipelineError as e:
            self.error = str(e)
            return None

        self._adopt(outcome)
        self.success = f"Successfully minted {outcome.label}!"
        return outcome

    def slots(self) -> List[SlotResolution]:
        if self.snapshot is None:
            return []
        return self.resolver.slots(self.snapshot)

    def share_link(self, index: int) -> str:
        return self.share_service.encode(self.collection_id, index)

    def qr_code_url(self, index: int) -> str:
        return self.share_service.qr_code_url(self.share_link(index))
