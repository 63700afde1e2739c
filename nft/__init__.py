"""
DropForge - Publish and Redeem Pipeline

This package provides manifest publishing with round-trip verification, slot
resolution, slot redemption, share links with auto-mint, and the per-page
collection session built on top of them.
"""

# Publishing
from .manifest import (
    AssetPayload,
    ManifestBuilder,
    PublishProgress,
    PublishStage
)
from .launch import CollectionLauncher, LaunchResult

# Redemption
from .slots import SlotResolution, SlotResolver, slot_label
from .redemption import (
    RedemptionCoordinator,
    RedemptionOutcome,
    RedemptionState
)

# Share links and auto-mint
from .share import ShareConfig, ShareIntent, ShareLinkService
from .automint import AutoMintDecision, AutoMintStatus, AutoRedeemer
from .session import CollectionSession

from .exceptions import (
    PipelineError,
    UploadVerificationError,
    ManifestIntegrityError,
    IndexOutOfRangeError,
    PreconditionError,
    RedemptionFailedError
)

__version__ = "1.0.0"

__all__ = [
    # Publishing
    "AssetPayload",
    "ManifestBuilder",
    "PublishProgress",
    "PublishStage",
    "CollectionLauncher",
    "LaunchResult",

    # Redemption
    "SlotResolution",
    "SlotResolver",
    "slot_label",
    "RedemptionCoordinator",
    "RedemptionOutcome",
    "RedemptionState",

    # Share links
    "ShareConfig",
    "ShareIntent",
    "ShareLinkService",
    "AutoMintDecision",
    "AutoMintStatus",
    "AutoRedeemer",
    "CollectionSession",

    # Exceptions
    "PipelineError",
    "UploadVerificationError",
    "ManifestIntegrityError",
    "IndexOutOfRangeError",
    "PreconditionError",
    "RedemptionFailedError"
]
