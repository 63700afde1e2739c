"""
DropForge - Registry Schema Models

This module defines the Pydantic models for collections as stored on the ledger,
their manifests, the read-only snapshots clients cache, and creator input.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ledger.transactions import normalize_address

from .exceptions import DecodeError


MIST_PER_SUI = 10 ** 9
MAX_ROYALTY_BPS = 10_000
U64_MAX = 2 ** 64 - 1

logger = logging.getLogger(__name__)


def _decode_text(value: Any) -> Any:
    """On-ledger text may surface as a UTF-8 byte vector."""
    if isinstance(value, (list, tuple)) and all(isinstance(b, int) for b in value):
        try:
            return bytes(value).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Text field is not valid UTF-8: {e}")
    return value


class Collection(BaseModel):
    """Collection record as stored by the collection contract."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., description="Ledger object id")
    name: str = Field(..., description="Collection name")
    description: str = Field(default="")
    creator: str = Field(..., description="Creator account address")
    supply_cap: int = Field(..., ge=0, le=U64_MAX, alias="max_supply")
    minted_count: int = Field(..., ge=0, le=U64_MAX)
    price: int = Field(..., ge=0, le=U64_MAX, alias="mint_price", description="Price per mint in MIST")
    royalty_bps: Optional[int] = Field(default=None, ge=0, le=MAX_ROYALTY_BPS)
    manifest_ref: str = Field(..., min_length=1, alias="base_uri", description="Manifest blob id")

    @field_validator('name', 'description', 'manifest_ref', mode='before')
    @classmethod
    def decode_text(cls, v):
        """Accept strings or UTF-8 byte vectors."""
        return _decode_text(v)

    @model_validator(mode='after')
    def validate_minted_bounds(self):
        """Minted count can never exceed the supply cap."""
        if self.minted_count > self.supply_cap:
            raise ValueError(
                f"minted_count ({self.minted_count}) exceeds supply cap ({self.supply_cap})"
            )
        return self

    @property
    def remaining(self) -> int:
        return self.supply_cap - self.minted_count

    @property
    def is_sold_out(self) -> bool:
        return self.minted_count >= self.supply_cap

    @property
    def price_display(self) -> float:
        """Price in whole coins."""
        return self.price / MIST_PER_SUI

    @classmethod
    def from_object_data(cls, data: Dict[str, Any]) -> 'Collection':
        """
        Decode a ledger object response.

        Args:
            data: The "data" member of an object read with content

        Raises:
            DecodeError: Not a Move object, or fields of unexpected shape
        """
        content = (data or {}).get("content") or {}
        if content.get("dataType") != "moveObject":
            raise DecodeError(f"Object {data.get('objectId')} is not a Move object")

        fields = dict(content.get("fields") or {})
        fields["id"] = data.get("objectId") or _uid(fields.get("id"))

        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            raise DecodeError(f"Unexpected collection record shape: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "creator": self.creator,
            "supply_cap": self.supply_cap,
            "minted_count": self.minted_count,
            "price": self.price,
            "royalty_bps": self.royalty_bps,
            "manifest_ref": self.manifest_ref
        }


def _uid(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id")
    return value


class Manifest(BaseModel):
    """Ordered asset URLs; position i is slot i."""

    model_config = ConfigDict(frozen=True)

    urls: Tuple[str, ...] = Field(default_factory=tuple)

    @field_validator('urls')
    @classmethod
    def validate_urls(cls, v):
        for i, url in enumerate(v):
            if not url.strip():
                raise ValueError(f"Manifest entry {i} is empty")
        return v

    def __len__(self) -> int:
        return len(self.urls)

    def __getitem__(self, index: int) -> str:
        return self.urls[index]

    def __iter__(self):
        return iter(self.urls)

    def to_json(self) -> str:
        """Document form uploaded to the blob store."""
        return json.dumps(list(self.urls), indent=2)

    @classmethod
    def from_json(cls, document: Union[str, bytes]) -> 'Manifest':
        """
        Parse a manifest document.

        Raises:
            DecodeError: Not a JSON array of non-empty strings
        """
        try:
            parsed = json.loads(document)
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeError(f"Manifest is not valid JSON: {e}") from e

        if not isinstance(parsed, list) or not all(isinstance(u, str) for u in parsed):
            raise DecodeError("Manifest must be a JSON array of URL strings")

        try:
            return cls(urls=tuple(parsed))
        except ValidationError as e:
            raise DecodeError(f"Invalid manifest: {e}") from e


class CollectionSnapshot(BaseModel):
    """Read-only view of a collection and its manifest at a point in time."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    manifest: Manifest
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def minted_count(self) -> int:
        return self.collection.minted_count

    @property
    def manifest_mismatch(self) -> bool:
        """Manifest length differs from the supply cap."""
        return len(self.manifest) != self.collection.supply_cap


class CollectionSummary(BaseModel):
    """Entry of a creator's collection list, decoded from a creation event."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    creator: str
    name: str

    @field_validator('name', mode='before')
    @classmethod
    def decode_name(cls, v):
        return _decode_text(v)

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> 'CollectionSummary':
        try:
            return cls.model_validate(event.get("parsedJson") or {})
        except ValidationError as e:
            raise DecodeError(f"Unexpected CollectionCreated event shape: {e}") from e


class CollectionDraft(BaseModel):
    """Creator input for a new collection."""

    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field(default="", max_length=2048)
    supply_cap: int = Field(..., ge=1, le=U64_MAX)
    royalty_bps: int = Field(default=0, ge=0, le=MAX_ROYALTY_BPS)
    price: int = Field(..., ge=0, le=U64_MAX, description="Price per mint in MIST")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Collection name must not be blank')
        return v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def summaries_for_creator(events: List[Dict[str, Any]], creator: str) -> List[CollectionSummary]:
    """
    Decode creation events and keep those created by `creator`.

    Events that cannot be decoded are logged and skipped so one bad entry
    does not hide the rest of the listing.

    Raises:
        ValueError: `creator` is not a valid address
    """
    wanted = normalize_address(creator)
    summaries = []
    for event in events:
        try:
            summary = CollectionSummary.from_event(event)
            event_creator = normalize_address(summary.creator)
        except (DecodeError, ValueError) as e:
            logger.warning(f"Skipping undecodable CollectionCreated event: {e}")
            continue
        if event_creator == wanted:
            summaries.append(summary)
    return summaries
