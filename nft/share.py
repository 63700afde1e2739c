"""
DropForge - Share Links

Stateless encoding of a (collection, slot) pair into a deep link of the form
``{base_url}/collections/{collection_id}?mintIndex={index}`` and a QR code
image URL rendered by a third-party endpoint. Decoding never raises.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, quote, urlencode, urlparse


DEFAULT_BASE_URL = "https://dropforge.app"
DEFAULT_QR_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"
MINT_INDEX_PARAM = "mintIndex"

# Plain decimal index; the length cap keeps it within u64 before int()
_DECIMAL = re.compile(r'[0-9]{1,19}')


@dataclass
class ShareConfig:
    """Share link configuration."""
    base_url: str = DEFAULT_BASE_URL
    qr_endpoint: str = DEFAULT_QR_ENDPOINT
    qr_size: int = 200

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Share base URL must be http(s): {self.base_url}")
        if self.qr_size <= 0:
            raise ValueError("QR size must be positive")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ShareConfig':
        """Create from the `share` section of the loaded configuration."""
        return cls(
            base_url=config.get("base_url", DEFAULT_BASE_URL),
            qr_endpoint=config.get("qr_endpoint", DEFAULT_QR_ENDPOINT),
            qr_size=int(config.get("qr_size", 200))
        )


@dataclass(frozen=True)
class ShareIntent:
    """Decoded mint intent: either valid(index) or invalid."""
    index: Optional[int] = None

    @property
    def valid(self) -> bool:
        return self.index is not None

    @classmethod
    def invalid(cls) -> 'ShareIntent':
        return cls(None)


class ShareLinkService:
    """Encode and decode mint deep links."""

    def __init__(self, config: Optional[ShareConfig] = None):
        self.config = config or ShareConfig()

    def collection_url(self, collection_id: str) -> str:
        return f"{self.config.base_url}/collections/{quote(collection_id, safe='')}"

    def encode(self, collection_id: str, index: int) -> str:
        """Deep link pre-selecting slot `index` (0-based)."""
        if not collection_id:
            raise ValueError("Collection id is required")
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError(f"Slot index must be a non-negative integer: {index!r}")
        return f"{self.collection_url(collection_id)}?{urlencode({MINT_INDEX_PARAM: index})}"

    def decode(self, url: Optional[str], manifest_length: Optional[int] = None) -> ShareIntent:
        """
        Decode the mint intent of a deep link.

        The intent is invalid when the parameter is absent, is not a plain
        non-negative decimal integer, or is outside the manifest when its
        length is known.
        """
        if not url:
            return ShareIntent.invalid()
        try:
            values = parse_qs(urlparse(url).query).get(MINT_INDEX_PARAM)
        except ValueError:
            return ShareIntent.invalid()

        if not values or not _DECIMAL.fullmatch(values[0]):
            return ShareIntent.invalid()

        index = int(values[0])
        if manifest_length is not None and index >= manifest_length:
            return ShareIntent.invalid()
        return ShareIntent(index)

    def collection_id_from(self, url: Optional[str]) -> Optional[str]:
        """Collection id from the link path, if present."""
        if not url:
            return None
        try:
            segments = [s for s in urlparse(url).path.split("/") if s]
        except ValueError:
            return None
        if "collections" not in segments:
            return None
        position = segments.index("collections")
        if position + 1 >= len(segments):
            return None
        return segments[position + 1]

    def qr_code_url(self, url: str, size: Optional[int] = None) -> str:
        """URL of a QR code image encoding `url`."""
        size = size or self.config.qr_size
        params = urlencode({"size": f"{size}x{size}", "data": url})
        return f"{self.config.qr_endpoint}?{params}"
