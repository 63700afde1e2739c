"""
DropForge - Slot Resolution

A slot is a manifest position; it has no stored record. Availability is derived
from the collection's minted counter at the moment of the check:
a slot is available iff its index is at or past the counter. The ledger only
advances that counter, so "next available" is a client convention rather than
a reservation.
"""

from dataclasses import dataclass
from typing import List, Optional

from registry.schema import CollectionSnapshot

from .exceptions import IndexOutOfRangeError


@dataclass(frozen=True)
class SlotResolution:
    """Resolved slot with derived availability."""
    index: int
    asset_url: str
    available: bool
    label: str

    @property
    def display_number(self) -> int:
        """1-based number shown to users."""
        return self.index + 1

    def to_dict(self):
        return {
            "index": self.index,
            "number": self.display_number,
            "asset_url": self.asset_url,
            "available": self.available,
            "label": self.label
        }


def slot_label(collection_name: str, index: int) -> str:
    """Display label of a minted slot, e.g. 'Sunsets #3' for index 2."""
    return f"{collection_name} #{index + 1}"


class SlotResolver:
    """Maps slot indices to assets and availability."""

    def resolve(self, snapshot: CollectionSnapshot, index: int) -> SlotResolution:
        """
        Resolve a slot.

        Raises:
            IndexOutOfRangeError: index < 0 or past the end of the manifest
        """
        length = len(snapshot.manifest)
        if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index >= length:
            raise IndexOutOfRangeError(index, length)

        return SlotResolution(
            index=index,
            asset_url=snapshot.manifest[index],
            available=index >= snapshot.minted_count,
            label=slot_label(snapshot.collection.name, index)
        )

    def slots(self, snapshot: CollectionSnapshot) -> List[SlotResolution]:
        return [self.resolve(snapshot, i) for i in range(len(snapshot.manifest))]

    def next_available(self, snapshot: CollectionSnapshot) -> Optional[SlotResolution]:
        """First available slot, or None when sold out or the manifest is exhausted."""
        index = snapshot.minted_count
        # Manifest entries past the supply cap can never be minted
        if index >= min(len(snapshot.manifest), snapshot.collection.supply_cap):
            return None
        return self.resolve(snapshot, index)
