"""
DropForge - Redemption Coordinator

Submits a mint for a specific slot with exact payment, waits for finality and
refreshes the collection snapshot before reporting success. One redemption may
be in flight per slot index on a client; different indices are independent.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set

from blobstore.exceptions import BlobStoreError
from ledger.client import Ledger, TransactionSigner
from ledger.exceptions import LedgerError, RejectionError
from registry.exceptions import RegistryError
from registry.manager import CollectionRegistry
from registry.schema import CollectionSnapshot

from .exceptions import PreconditionError, RedemptionFailedError
from .slots import slot_label


class RedemptionState(str, Enum):
    """Per-index redemption states."""
    IDLE = "idle"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    REFRESHING = "refreshing"
    REJECTED = "rejected"


@dataclass
class RedemptionOutcome:
    """Result of a confirmed redemption."""
    index: int
    label: str
    digest: str
    snapshot: Optional[CollectionSnapshot] = None
    refresh_error: Optional[str] = None

    @property
    def refreshed(self) -> bool:
        return self.snapshot is not None


TransitionListener = Callable[[int, RedemptionState, RedemptionState], None]


class RedemptionCoordinator:
    """Coordinates slot redemptions for one client session."""

    def __init__(self, registry: CollectionRegistry, ledger: Ledger,
                 listener: Optional[TransitionListener] = None):
        """
        Initialize redemption coordinator.

        Args:
            registry: Registry used to build the mint call and refresh snapshots
            ledger: Ledger the mint is executed on
            listener: Optional callback receiving (index, old_state, new_state)
        """
        self.registry = registry
        self.ledger = ledger
        self.listener = listener
        self.logger = logging.getLogger(__name__)
        self._states: Dict[int, RedemptionState] = {}
        self._in_flight: Set[int] = set()

    def state(self, index: int) -> RedemptionState:
        return self._states.get(index, RedemptionState.IDLE)

    def in_flight(self, index: int) -> bool:
        return index in self._in_flight

    def _transition(self, index: int, new_state: RedemptionState):
        old_state = self.state(index)
        if new_state == RedemptionState.IDLE:
            self._states.pop(index, None)
        else:
            self._states[index] = new_state
        self.logger.debug(f"Slot {index}: {old_state.value} -> {new_state.value}")
        if self.listener:
            self.listener(index, old_state, new_state)

    async def redeem(self, snapshot: Optional[CollectionSnapshot], index: int,
                     asset_url: str, signer: Optional[TransactionSigner]) -> RedemptionOutcome:
        """
        Redeem a slot.

        Args:
            snapshot: Currently displayed collection snapshot
            index: 0-based slot index the label is built for
            asset_url: Asset reference recorded on the minted item
            signer: Connected wallet paying for the mint

        Returns:
            Outcome with digest and refreshed snapshot

        Raises:
            PreconditionError: No wallet, no snapshot, or this index already in flight
            RedemptionFailedError: Submission, rejection or finality failure
        """
        if signer is None or not getattr(signer, "address", None):
            raise PreconditionError("Please connect your wallet first")
        if snapshot is None:
            raise PreconditionError("Collection is not loaded")
        if index in self._in_flight:
            raise PreconditionError(f"A mint for NFT #{index + 1} is already in progress")

        collection = snapshot.collection
        label = slot_label(collection.name, index)

        self._in_flight.add(index)
        try:
            self._transition(index, RedemptionState.SUBMITTING)
            self.logger.info(
                f"Minting '{label}' from {collection.id} for {collection.price} MIST"
            )

            try:
                tx = self.registry.mint_transaction(collection, label, asset_url, signer.address)
                receipt = await self.ledger.execute(tx, signer)
            except (LedgerError, ValueError) as e:
                reason = e.reason if isinstance(e, RejectionError) else str(e)
                self.logger.error(f"Mint of '{label}' failed: {reason}")
                self._transition(index, RedemptionState.REJECTED)
                self._transition(index, RedemptionState.IDLE)
                raise RedemptionFailedError(reason, index) from e

            self._transition(index, RedemptionState.CONFIRMED)
            outcome = RedemptionOutcome(index=index, label=label, digest=receipt.digest)

            self._transition(index, RedemptionState.REFRESHING)
            try:
                outcome.snapshot = await self.registry.refresh(collection.id)
            except (RegistryError, BlobStoreError, LedgerError) as e:
                # the mint is final; only the local view is stale
                self.logger.warning(f"Refresh after minting '{label}' failed: {e}")
                outcome.refresh_error = str(e)

            self._transition(index, RedemptionState.IDLE)
            self.logger.info(f"Minted '{label}' in {receipt.digest}")
            return outcome
        finally:
            self._in_flight.discard(index)
