"""Exception types raised by composition and capture I/O."""
from __future__ import annotations

from typing import Optional


class PhotosphereError(Exception):
    """Base class for application errors."""


class InsufficientPhotosError(PhotosphereError, ValueError):
    """Raised when too few photos are handed to the compositor."""

    def __init__(self, supplied: int, required: int) -> None:
        super().__init__(
            f"At least {required} photos are required to compose a panorama; got {supplied}."
        )
        self.supplied = supplied
        self.required = required


class DecodeError(PhotosphereError, ValueError):
    """Raised when a captured photo cannot be decoded into pixels."""

    def __init__(self, photo_id: int, reason: Optional[str] = None) -> None:
        message = f"Unable to decode photo {photo_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.photo_id = photo_id


class CompositionCancelled(PhotosphereError):
    """Raised when a composition run observes its cancel event."""


class CaptureManifestError(PhotosphereError, ValueError):
    """Raised for malformed capture manifests."""
