"""
DropForge - Auto-mint

Drives redemption from a share link on page load. The page re-evaluates its
conditions whenever the snapshot or wallet changes; the redemption itself fires
at most once per page load.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ledger.client import TransactionSigner
from registry.schema import CollectionSnapshot

from .exceptions import PipelineError
from .redemption import RedemptionCoordinator, RedemptionOutcome
from .share import ShareIntent, ShareLinkService
from .slots import SlotResolver


class AutoMintStatus(str, Enum):
    """Outcome of an auto-mint evaluation."""
    NO_INTENT = "no_intent"
    WAITING = "waiting"
    ALREADY_REDEEMED = "already_redeemed"
    CONNECT_WALLET = "connect_wallet"
    TRIGGERED = "triggered"
    COMPLETED = "completed"


@dataclass
class AutoMintDecision:
    """What an evaluation decided, with the user-facing message if any."""
    status: AutoMintStatus
    index: Optional[int] = None
    message: Optional[str] = None
    outcome: Optional[RedemptionOutcome] = None
    error: Optional[PipelineError] = None

    @property
    def succeeded(self) -> bool:
        return self.status == AutoMintStatus.TRIGGERED and self.outcome is not None


class AutoRedeemer:
    """One-shot auto-mint for the share link a page was opened with."""

    def __init__(self, page_url: Optional[str], coordinator: RedemptionCoordinator,
                 share_service: Optional[ShareLinkService] = None,
                 resolver: Optional[SlotResolver] = None):
        self.page_url = page_url
        self.coordinator = coordinator
        self.share_service = share_service or ShareLinkService()
        self.resolver = resolver or SlotResolver()
        self.logger = logging.getLogger(__name__)
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def intent(self, snapshot: Optional[CollectionSnapshot] = None) -> ShareIntent:
        length = len(snapshot.manifest) if snapshot is not None else None
        return self.share_service.decode(self.page_url, length)

    async def evaluate(self, snapshot: Optional[CollectionSnapshot],
                       signer: Optional[TransactionSigner]) -> AutoMintDecision:
        """
        Evaluate the auto-mint conditions and redeem when they all hold.

        Args:
            snapshot: Loaded snapshot, or None while loading
            signer: Connected wallet, or None
        """
        intent = self.intent(snapshot)
        if not intent.valid:
            return AutoMintDecision(AutoMintStatus.NO_INTENT)

        index = intent.index
        number = index + 1

        if self._fired:
            return AutoMintDecision(AutoMintStatus.COMPLETED, index)

        if snapshot is None:
            return AutoMintDecision(AutoMintStatus.WAITING, index)

        slot = self.resolver.resolve(snapshot, index)
        if not slot.available:
            return AutoMintDecision(
                AutoMintStatus.ALREADY_REDEEMED, index,
                message=f"NFT #{number} has already been minted."
            )

        if signer is None or not getattr(signer, "address", None):
            return AutoMintDecision(
                AutoMintStatus.CONNECT_WALLET, index,
                message=f"Connect your wallet to mint NFT #{number}"
            )

        # set before awaiting so re-entrant evaluations see it
        self._fired = True
        self.logger.info(f"Auto-minting NFT #{number} from share link")

        try:
            outcome = await self.coordinator.redeem(snapshot, index, slot.asset_url, signer)
        except PipelineError as e:
            self.logger.warning(f"Auto-mint of NFT #{number} failed: {e}")
            return AutoMintDecision(AutoMintStatus.TRIGGERED, index, message=str(e), error=e)

        return AutoMintDecision(
            AutoMintStatus.TRIGGERED, index,
            message=f"Successfully minted NFT #{number}!",
            outcome=outcome
        )
