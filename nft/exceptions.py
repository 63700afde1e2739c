"""
DropForge - Pipeline Exceptions

This module defines the exceptions raised by the publish and redeem pipeline.
All of them are terminal for the current user action; callers retry manually.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for publish/redeem pipeline errors."""
    pass


class UploadVerificationError(PipelineError):
    """An asset failed to upload or failed its post-upload existence check."""
    
    def __init__(self, index: int, reason: Optional[str] = None):
        self.index = index
        self.reason = reason or "existence check failed"
        super().__init__(f"Asset {index + 1} upload verification failed: {self.reason}")


class ManifestIntegrityError(PipelineError):
    """The uploaded manifest does not round-trip to the locally built list."""
    pass


class IndexOutOfRangeError(PipelineError):
    """Slot index outside the manifest."""
    
    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Slot index {index} out of range for manifest of {length}")


class PreconditionError(PipelineError):
    """An operation was invoked without what it needs (wallet, loaded collection, ...)."""
    pass


class RedemptionFailedError(PipelineError):
    """A redemption was declined or could not be submitted."""
    
    def __init__(self, reason: str, index: Optional[int] = None):
        self.reason = reason
        self.index = index
        super().__init__(f"Minting failed: {reason}")
